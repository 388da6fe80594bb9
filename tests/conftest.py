from typing import Any

import pytest

from coco_access.coco_index import CocoIndex, build_coco_index
from coco_access.schemas.coco import CocoDataset
from coco_access.utils.coco import parse_dataset


@pytest.fixture
def raw_instances() -> dict[str, Any]:
    """Two images, two categories, three annotations."""
    return {
        "type": "instances",
        "images": [
            {"id": 1, "file_name": "000001.jpg", "height": 10, "width": 12},
            {"id": 2, "file_name": "000002.jpg", "height": 10, "width": 12},
        ],
        "categories": [
            {"id": 10, "name": "cat", "supercategory": "animal"},
            {"id": 20, "name": "dog", "supercategory": "animal"},
        ],
        "annotations": [
            {"id": 100, "image_id": 1, "category_id": 10, "area": 50, "iscrowd": 0,
             "segmentation": [[1, 1, 8, 1, 8, 6, 1, 6]]},
            {"id": 101, "image_id": 1, "category_id": 20, "area": 30, "iscrowd": 0,
             "segmentation": [[0, 0, 4, 0, 0, 4]]},
            {"id": 102, "image_id": 2, "category_id": 10, "area": 40, "iscrowd": 1,
             "segmentation": {"size": [10, 12], "counts": [30, 40, 50]}},
        ],
    }


@pytest.fixture
def raw_captions() -> dict[str, Any]:
    return {
        "type": "captions",
        "images": [{"id": 1, "height": 4, "width": 4}, {"id": 2, "height": 4, "width": 4}, {"id": 3}],
        "annotations": [
            {"id": 7, "image_id": 1, "caption": "a cat on a mat"},
            {"id": 8, "image_id": 1, "caption": "a sleepy cat"},
            {"id": 9, "image_id": 3, "caption": "an empty street"},
        ],
    }


@pytest.fixture
def instances(raw_instances: dict[str, Any]) -> CocoDataset:
    return parse_dataset(raw_instances)


@pytest.fixture
def index(instances: CocoDataset) -> CocoIndex:
    return build_coco_index(instances)


@pytest.fixture
def captions_index(raw_captions: dict[str, Any]) -> CocoIndex:
    return build_coco_index(parse_dataset(raw_captions))
