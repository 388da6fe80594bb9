import time
from typing import Any, Sequence, Union
from pathlib import Path

from .coco_index import CocoIndex, build_coco_index
from .errors import DataError, MismatchError
from .mask_codec import area, bbox_to_polygon, polygon_to_mask
from .schemas.coco import CocoDataset, Rle
from .utils.coco import parse_annotation, parse_segmentation
from .utils.io import ensure_exists, read_json

# checked in this order on the first record
RESULT_KINDS = ("segmentation", "bbox", "caption")


def _result_kind(results: Sequence[dict[str, Any]]) -> str:
    first = results[0]
    kind = next((k for k in RESULT_KINDS if k in first), None)

    if kind is None:
        raise DataError(f"Result records must carry one of {list(RESULT_KINDS)}: {first!r}")

    for r in results:
        if kind not in r:
            raise DataError(f"Mixed result kinds: expected `{kind}` in every record, got {r!r}")

    return kind


def _read_results(results: Union[str, Path, Sequence[dict[str, Any]]]) -> list[dict[str, Any]]:
    if isinstance(results, (str, Path)):
        path = Path(results).expanduser().resolve()
        ensure_exists(path, "Results file")
        results = read_json(path)

    if not isinstance(results, (list, tuple)):
        raise DataError(f"Results must be a list of records, got {type(results)}")

    return [dict(r) for r in results]


def _segmentation_area(index: CocoIndex, record: dict[str, Any]) -> float:
    segmentation = record["segmentation"]

    if isinstance(segmentation, Rle):
        return float(area(segmentation))

    # polygon results: count rasterized foreground at the image's size
    img = index.load_imgs([record["image_id"]])[0]
    if img.height is None or img.width is None:
        raise DataError(f"image {img.id} needs height/width to measure polygon results")

    return float((polygon_to_mask(segmentation, img.height, img.width) > 0).sum())


def load_results(index: CocoIndex, results: Union[str, Path, Sequence[dict[str, Any]]]) -> CocoIndex:
    """
    Wrap algorithm results as a dataset comparable to `index` and index it.

    Missing fields are derived per result kind:
      caption:      id; images restricted to the ones with results
      bbox:         rectangle polygon, area = w*h, id, iscrowd=0
      segmentation: area from the mask, bbox unset, id, iscrowd=0
    Ids are assigned sequentially from 1 in input order.
    """
    print("Loading and preparing results...", end=" ", flush=True)
    t0 = time.perf_counter()

    records = _read_results(results)
    if not records:
        raise DataError("Results are empty")

    kind = _result_kind(records)

    for r in records:
        if "image_id" not in r:
            raise DataError(f"Result record is missing `image_id`: {r!r}")
        r["image_id"] = int(r["image_id"])

    res_img_ids = {r["image_id"] for r in records}
    if unknown := sorted(res_img_ids - set(index.img_ids)):
        raise MismatchError(f"Results do not correspond to current coco set, unknown image ids: {unknown}")

    gt: CocoDataset = index.dataset
    images = gt.images

    for i, r in enumerate(records, start=1):
        r["id"] = i

        if kind == "caption":
            continue

        if kind == "bbox":
            r["segmentation"] = [bbox_to_polygon(r["bbox"])]
            r["area"] = float(r["bbox"][2]) * float(r["bbox"][3])

        else:
            r["segmentation"] = parse_segmentation(r["segmentation"])
            r["area"] = _segmentation_area(index, r)
            r["bbox"] = None

        r["iscrowd"] = 0

    if kind == "caption":
        images = tuple(im for im in gt.images if im.id in res_img_ids)

    dataset = CocoDataset(type=gt.type,
                          images=images,
                          annotations=tuple(parse_annotation(r) for r in records),
                          categories=gt.categories,
                          info=gt.info)

    print(f"DONE (t={time.perf_counter() - t0:.2f}s)")
    return build_coco_index(dataset)
