"""Tests for wrapping algorithm results as a comparable dataset."""

import json
from pathlib import Path

import numpy as np
import pytest
from pycocotools import mask as mask_utils

from coco_access.coco_index import CocoIndex
from coco_access.errors import DataError, MismatchError
from coco_access.mask_codec import encode, rle_to_dict
from coco_access.results import load_results
from coco_access.schemas.coco import Rle


@pytest.fixture
def blob() -> np.ndarray:
    mask = np.zeros((10, 12), dtype=np.uint8)
    mask[2:6, 3:9] = 1
    return mask


class TestBboxResults:
    def test_derived_fields(self, index: CocoIndex) -> None:
        res = load_results(index, [{"image_id": 1, "bbox": [2, 3, 4, 5], "category_id": 10, "score": 0.9}])
        ann = res.load_anns([1])[0]

        assert ann.area == 20
        assert ann.segmentation == [[2, 3, 2, 8, 6, 8, 6, 3]]
        assert ann.iscrowd is False
        assert ann.bbox == (2, 3, 4, 5)
        assert ann.score == pytest.approx(0.9)

    def test_sequential_ids_and_queries(self, index: CocoIndex) -> None:
        res = load_results(index, [
            {"image_id": 2, "bbox": [0, 0, 2, 2], "category_id": 20, "score": 0.5},
            {"image_id": 1, "bbox": [1, 1, 3, 3], "category_id": 10, "score": 0.7},
            {"image_id": 1, "bbox": [0, 0, 5, 5], "category_id": 20, "score": 0.2},
        ])

        assert res.ann_ids == [1, 2, 3]
        assert res.get_ann_ids(img_ids=[1]) == [2, 3]
        assert res.get_ann_ids(cat_ids=[20], area_rng=(0, 10)) == [1]
        assert res.get_img_ids(cat_ids=[10, 20]) == [1]

    def test_images_and_categories_are_kept(self, index: CocoIndex) -> None:
        res = load_results(index, [{"image_id": 1, "bbox": [2, 3, 4, 5], "category_id": 10}])

        assert res.img_ids == [1, 2]
        assert res.cat_ids == [10, 20]
        assert res.get_ann_ids(img_ids=[2]) == []

    def test_without_category(self, index: CocoIndex) -> None:
        res = load_results(index, [{"image_id": 1, "bbox": [2, 3, 4, 5]}])
        ann = res.load_anns([1])[0]

        assert ann.id == 1
        assert ann.category_id is None
        assert ann.area == 20
        assert ann.iscrowd is False
        assert ann.segmentation == [[2, 3, 2, 8, 6, 8, 6, 3]]
        assert res.get_ann_ids(img_ids=[1]) == [1]
        assert res.get_ann_ids(cat_ids=[10, 20]) == []


class TestSegmentationResults:
    def test_uncompressed_rle(self, index: CocoIndex, blob: np.ndarray) -> None:
        res = load_results(index, [{"image_id": 1, "category_id": 10, "segmentation": rle_to_dict(encode(blob))}])
        ann = res.load_anns([1])[0]

        assert isinstance(ann.segmentation, Rle)
        assert ann.area == 24
        assert ann.bbox is None
        assert ann.iscrowd is False

    def test_compressed_rle(self, index: CocoIndex, blob: np.ndarray) -> None:
        rle = mask_utils.encode(np.asfortranarray(blob))
        rle["counts"] = rle["counts"].decode("ascii")

        res = load_results(index, [{"image_id": 2, "category_id": 20, "segmentation": rle}])
        ann = res.load_anns([1])[0]

        assert ann.segmentation == encode(blob)
        assert ann.area == float(mask_utils.area(mask_utils.encode(np.asfortranarray(blob))))

    def test_polygon(self, index: CocoIndex) -> None:
        res = load_results(index, [{"image_id": 1, "category_id": 10,
                                    "segmentation": [[2, 3, 2, 8, 6, 8, 6, 3]]}])

        assert res.load_anns([1])[0].area == 20

    def test_rle_without_category(self, index: CocoIndex) -> None:
        res = load_results(index, [{"image_id": 1, "segmentation": {"size": [1, 10], "counts": [3, 4, 3]}}])
        ann = res.load_anns([1])[0]

        assert ann.category_id is None
        assert ann.area == 4
        assert ann.bbox is None
        assert res.get_ann_ids(img_ids=1) == [1]


class TestCaptionResults:
    def test_images_are_restricted(self, captions_index: CocoIndex) -> None:
        res = load_results(captions_index, [
            {"image_id": 2, "caption": "two dogs"},
            {"image_id": 2, "caption": "dogs playing"},
        ])

        assert res.img_ids == [2]
        assert res.ann_ids == [1, 2]
        assert res.get_ann_ids(img_ids=[2]) == [1, 2]
        assert res.load_anns([2])[0].caption == "dogs playing"


class TestValidation:
    def test_unknown_image(self, index: CocoIndex) -> None:
        with pytest.raises(MismatchError):
            load_results(index, [{"image_id": 999, "bbox": [0, 0, 1, 1], "category_id": 10}])

    def test_empty(self, index: CocoIndex) -> None:
        with pytest.raises(DataError):
            load_results(index, [])

    def test_mixed_kinds(self, index: CocoIndex) -> None:
        with pytest.raises(DataError, match="Mixed result kinds"):
            load_results(index, [
                {"image_id": 1, "bbox": [0, 0, 1, 1], "category_id": 10},
                {"image_id": 1, "caption": "a cat"},
            ])

    def test_no_kind(self, index: CocoIndex) -> None:
        with pytest.raises(DataError):
            load_results(index, [{"image_id": 1, "category_id": 10}])

    def test_missing_image_id(self, index: CocoIndex) -> None:
        with pytest.raises(DataError):
            load_results(index, [{"bbox": [0, 0, 1, 1], "category_id": 10}])


def test_results_from_file(tmp_path: Path, index: CocoIndex) -> None:
    path = tmp_path / "results.json"
    path.write_text(json.dumps([{"image_id": 2, "bbox": [1, 1, 2, 3], "category_id": 10, "score": 0.3}]))

    res = load_results(index, path)

    assert res.get_ann_ids(img_ids=[2]) == [1]
    assert res.load_anns([1])[0].area == 6
