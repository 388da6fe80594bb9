"""Tests for YAML config loading."""

from pathlib import Path

import pytest
import yaml

from coco_access.config import load_config


def _write(tmp_path: Path, cfg: dict) -> Path:
    path = tmp_path / "query.yaml"
    path.write_text(yaml.safe_dump(cfg))
    return path


def test_defaults(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, {"dataset": {"annotations": "instances.json"}}))

    assert cfg.dataset.annotations.name == "instances.json"
    assert cfg.dataset.annotations.is_absolute()
    assert cfg.dataset.results is None
    assert cfg.query.img_ids == ()
    assert cfg.query.area_range is None
    assert cfg.query.iscrowd is None
    assert cfg.masks.export_dir is None
    assert cfg.masks.granularity == 1.0


def test_full(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, {
        "dataset": {"annotations": "instances.json", "results": "res.json"},
        "query": {"img_ids": [1, 2], "cat_names": ["dog"], "area_range": [0, 100], "iscrowd": False},
        "masks": {"export_dir": "masks", "granularity": 2},
    }))

    assert cfg.dataset.results.name == "res.json"
    assert cfg.query.img_ids == (1, 2)
    assert cfg.query.cat_names == ("dog",)
    assert cfg.query.area_range == (0.0, 100.0)
    assert cfg.query.iscrowd is False
    assert cfg.masks.export_dir.name == "masks"
    assert cfg.masks.granularity == 2.0
    assert cfg.raw["query"]["cat_names"] == ["dog"]


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_annotations_required(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"dataset": {"results": "res.json"}}))


@pytest.mark.parametrize("area_range", [[1], [5, 1], "big"])
def test_bad_area_range(tmp_path: Path, area_range) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"dataset": {"annotations": "a.json"}, "query": {"area_range": area_range}}))


def test_bad_granularity(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"dataset": {"annotations": "a.json"}, "masks": {"granularity": 0}}))
