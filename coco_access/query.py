import time
import argparse
import numpy as np
from pathlib import Path
from typing import Optional

from coco_access.config import load_config, QueryConfig
from coco_access.coco_index import CocoIndex, build_coco_index
from coco_access.errors import DataError
from coco_access.mask_codec import polygon_to_mask
from coco_access.results import load_results
from coco_access.schemas.coco import CocoAnnotation, CocoImage
from coco_access.utils import annotation_to_mask, load_dataset, mask_output_path, write_npy

# ANSI colors for logs
C_RESET = "\033[0m"
C_BOLD = "\033[1m"
C_DIM = "\033[2m"
C_RED = "\033[31m"
C_GREEN = "\033[32m"
C_YELLOW = "\033[33m"
C_BLUE = "\033[34m"
C_CYAN = "\033[36m"


def run_query(index: CocoIndex, query: QueryConfig) -> dict[str, list[int]]:
    """
    Resolve the configured filters against the index.

    Returns:
      {"cat_ids": [...], "img_ids": [...], "ann_ids": [...]}
      img_ids holds images containing ALL selected categories,
      ann_ids the annotations matching every filter.
    """
    cat_ids: list[int] = []

    if query.cat_names or query.sup_names or query.cat_ids:
        if not index.dataset.is_instances:
            raise DataError("category filters are only defined for instances datasets")

        cat_ids = index.get_cat_ids(cat_nms=query.cat_names, sup_nms=query.sup_names, cat_ids=query.cat_ids)

        # nothing matched: an empty id list would disable the filter downstream
        if not cat_ids:
            return {"cat_ids": [], "img_ids": [], "ann_ids": []}

    img_ids = index.get_img_ids(img_ids=query.img_ids, cat_ids=cat_ids)

    ann_ids = index.get_ann_ids(img_ids=query.img_ids,
                                cat_ids=cat_ids,
                                area_rng=query.area_range,
                                iscrowd=query.iscrowd)

    return {"cat_ids": cat_ids, "img_ids": img_ids, "ann_ids": ann_ids}


def render_mask(ann: CocoAnnotation, img: CocoImage, granularity: float = 1.0) -> np.ndarray:
    """
    HxW mask for one annotation. Polygons with granularity != 1 give a soft float32 mask.
    """
    if img.height is None or img.width is None:
        raise DataError(f"image {img.id} needs height/width to render masks")

    if isinstance(ann.segmentation, list) and granularity != 1:
        return polygon_to_mask(ann.segmentation, img.height, img.width, granularity)

    return annotation_to_mask(ann, img.height, img.width)


def export_masks(index: CocoIndex, ann_ids: list[int], export_dir: Path, granularity: float = 1.0) -> int:
    n = 0
    for ann in index.load_anns(ann_ids):
        img = index.load_imgs([ann.image_id])[0]
        write_npy(mask_output_path(export_dir, img.id, ann.id), render_mask(ann, img, granularity))
        n += 1

    return n


def _preview(ids: list[int], limit: int) -> str:
    head = ", ".join(str(i) for i in ids[:limit])
    return head + (f", ... (+{len(ids) - limit})" if len(ids) > limit else "")


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Query a COCO annotation file")

    parser.add_argument(
        "--config",
        type=str,
        default="configs/query.yaml",
        help="Path to YAML config")

    parser.add_argument(
        "--results",
        type=str,
        default=None,
        help="Results JSON to query instead of the ground truth (overrides dataset.results)")

    parser.add_argument(
        "--export_masks",
        type=str,
        default=None,
        help="Directory to write decoded masks of matching annotations (overrides masks.export_dir)")

    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="How many ids to print per list")

    args = parser.parse_args(argv)

    cfg = load_config(args.config)

    t0 = time.perf_counter()
    index = build_coco_index(load_dataset(cfg.dataset.annotations))

    if (results := args.results or cfg.dataset.results) is not None:
        index = load_results(index, results)

    summary = index.summary()
    print(f"{C_BOLD}{C_BLUE}Dataset:{C_RESET} type={summary['type']} | "
          f"images={summary['images']} | annotations={summary['annotations']} | "
          f"categories={summary['categories']} (built in {time.perf_counter() - t0:.1f}s)")

    found = run_query(index, cfg.query)

    for key in ("cat_ids", "img_ids", "ann_ids"):
        ids = found[key]
        color = C_GREEN if ids else C_YELLOW
        print(f"{C_BOLD}{color}{key}{C_RESET} ({len(ids)}): {C_DIM}{_preview(ids, args.limit)}{C_RESET}")

    export_dir = Path(args.export_masks).expanduser().resolve() if args.export_masks else cfg.masks.export_dir

    if export_dir is not None:
        if not index.dataset.is_instances:
            print(f"{C_RED}Masks are only defined for instances datasets, skipping export{C_RESET}")
            return

        n = export_masks(index, found["ann_ids"], export_dir, cfg.masks.granularity)
        print(f"{C_BOLD}{C_GREEN}Exported{C_RESET} {n} masks to {C_CYAN}{export_dir}{C_RESET}")


if __name__ == "__main__":
    main()
