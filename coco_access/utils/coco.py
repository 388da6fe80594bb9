import time
import numpy as np
from typing import Any, Optional
from pathlib import Path
from pycocotools import mask as mask_utils

from ..errors import DataError, FormatError
from ..mask_codec import decode, encode, polygon_to_mask, rle_from_dict
from ..schemas.coco import (CocoAnnotation,
                            CocoCategory,
                            CocoDataset,
                            CocoImage,
                            DatasetType,
                            Rle,
                            Segmentation)
from .io import ensure_exists, read_json

_IMAGE_KEYS = ("id", "file_name", "height", "width")
_CATEGORY_KEYS = ("id", "name", "supercategory")
_ANNOTATION_KEYS = ("id", "image_id", "category_id", "area", "iscrowd",
                    "segmentation", "bbox", "caption", "score")


def _require(raw: dict[str, Any], key: str, what: str) -> Any:
    if key not in raw:
        raise DataError(f"{what} record is missing `{key}`: {raw!r}")
    return raw[key]


def _extra(raw: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in raw.items() if k not in known}


def parse_segmentation(segmentation: Any) -> Optional[Segmentation]:
    """
    Normalize a COCO segmentation to either an Rle or a list of polygons
    """
    if segmentation is None:
        return None

    if isinstance(segmentation, Rle):
        return segmentation

    # polygons (list of lists)
    if isinstance(segmentation, list):
        if segmentation and not isinstance(segmentation[0], (list, tuple)):
            # a single flat polygon
            segmentation = [segmentation]
        return [[float(v) for v in poly] for poly in segmentation]

    # RLE dict
    if isinstance(segmentation, dict):
        # COCO can store RLE in two forms:
        # 1) compressed RLE: {"size": [h,w], "counts": <bytes or str>}
        # 2) uncompressed RLE: {"size": [h,w], "counts": <list[int]>}
        counts = segmentation.get("counts", None)

        if isinstance(counts, (str, bytes)):
            # pycocotools expects bytes
            seg = dict(segmentation)
            if isinstance(counts, str):
                seg["counts"] = counts.encode("ascii")
            m = mask_utils.decode(seg)
            return encode(m)

        return rle_from_dict(segmentation)

    raise TypeError(f"Unsupported COCO segmentation type: {type(segmentation)}")


def parse_image(raw: dict[str, Any]) -> CocoImage:
    height = raw.get("height", None)
    width = raw.get("width", None)

    return CocoImage(id=int(_require(raw, "id", "image")),
                     file_name=raw.get("file_name", None),
                     height=None if height is None else int(height),
                     width=None if width is None else int(width),
                     extra=_extra(raw, _IMAGE_KEYS))


def parse_category(raw: dict[str, Any]) -> CocoCategory:
    return CocoCategory(id=int(_require(raw, "id", "category")),
                        name=str(_require(raw, "name", "category")),
                        supercategory=str(raw.get("supercategory", "")),
                        extra=_extra(raw, _CATEGORY_KEYS))


def parse_annotation(raw: dict[str, Any]) -> CocoAnnotation:
    category_id = raw.get("category_id", None)
    score = raw.get("score", None)

    # results store bbox=[] when unset
    bbox = raw.get("bbox", None)
    if bbox is not None and len(bbox) == 0:
        bbox = None

    if bbox is not None:
        if len(bbox) != 4:
            raise DataError(f"bbox must be [x, y, w, h], got {bbox!r}")
        bbox = tuple(float(v) for v in bbox)

    return CocoAnnotation(id=int(_require(raw, "id", "annotation")),
                          image_id=int(_require(raw, "image_id", "annotation")),
                          category_id=None if category_id is None else int(category_id),
                          area=float(raw.get("area", 0.0)),
                          iscrowd=bool(raw.get("iscrowd", 0)),
                          segmentation=parse_segmentation(raw.get("segmentation", None)),
                          bbox=bbox,
                          caption=raw.get("caption", None),
                          score=None if score is None else float(score),
                          extra=_extra(raw, _ANNOTATION_KEYS))


def parse_dataset_type(raw: dict[str, Any]) -> DatasetType:
    """
    Newer COCO files omit `type`; fall back on the presence of categories.
    """
    if (tag := raw.get("type", None)) is None:
        return DatasetType.INSTANCES if "categories" in raw else DatasetType.CAPTIONS

    try:
        return DatasetType(str(tag))
    except ValueError as e:
        raise DataError(f"Unsupported dataset type: {tag!r}") from e


def parse_dataset(raw: dict[str, Any]) -> CocoDataset:
    """
    Raw (already deserialized) COCO dict -> tagged CocoDataset
    """
    if not isinstance(raw, dict):
        raise DataError(f"annotation data must be a dict, got {type(raw)}")

    dataset_type = parse_dataset_type(raw)

    images = tuple(parse_image(im) for im in raw.get("images", []))
    annotations = tuple(parse_annotation(ann) for ann in raw.get("annotations", []))

    categories = None
    if dataset_type is DatasetType.INSTANCES:
        categories = tuple(parse_category(c) for c in raw.get("categories", []))

    return CocoDataset(type=dataset_type,
                       images=images,
                       annotations=annotations,
                       categories=categories,
                       info=dict(raw.get("info", None) or {}))


def annotation_to_rle(ann: CocoAnnotation, height: int, width: int) -> Rle:
    """
    Segmentation (polygons or RLE) -> RLE of an HxW mask
    """
    segmentation = ann.segmentation

    if segmentation is None:
        raise DataError(f"annotation {ann.id} has no segmentation")

    if isinstance(segmentation, Rle):
        if tuple(segmentation.size) != (height, width):
            raise FormatError(f"annotation {ann.id}: RLE size {segmentation.size} "
                              f"does not match image size {(height, width)}")
        return segmentation

    return encode(polygon_to_mask(segmentation, height, width) > 0)


def annotation_to_mask(ann: CocoAnnotation, height: int, width: int) -> np.ndarray:
    """
    Segmentation (polygons or RLE) -> HxW uint8 mask of {0, 1}
    """
    if isinstance(ann.segmentation, list):
        return (polygon_to_mask(ann.segmentation, height, width) > 0).astype(np.uint8)

    return decode(annotation_to_rle(ann, height, width))


def load_dataset(path: str | Path) -> CocoDataset:
    path = Path(path).expanduser().resolve()
    ensure_exists(path, "Annotation file")

    print("Loading and preparing annotations...", end=" ", flush=True)
    t0 = time.perf_counter()

    dataset = parse_dataset(read_json(path))

    print(f"DONE (t={time.perf_counter() - t0:.2f}s)")
    return dataset
