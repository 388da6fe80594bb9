from typing import Any, Optional
from pathlib import Path
from dataclasses import dataclass

from coco_access.utils.io import read_yaml


@dataclass(frozen=True)
class DatasetConfig:
    annotations: Path
    results: Optional[Path] = None


@dataclass(frozen=True)
class QueryConfig:
    """
    Filters passed to the index queries; empty lists / None skip a filter.
    """
    img_ids: tuple[int, ...] = ()
    cat_ids: tuple[int, ...] = ()
    cat_names: tuple[str, ...] = ()
    sup_names: tuple[str, ...] = ()
    area_range: Optional[tuple[float, float]] = None
    iscrowd: Optional[bool] = None


@dataclass(frozen=True)
class MasksConfig:
    export_dir: Optional[Path] = None
    granularity: float = 1.0


@dataclass(frozen=True)
class AppConfig:
    """
    Top-level config object used by query.py.
    """
    dataset: DatasetConfig
    query: QueryConfig
    masks: MasksConfig

    raw: dict[str, Any]


def _optional_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value).expanduser().resolve()


def _parse_area_range(value: Any) -> Optional[tuple[float, float]]:
    if value is None:
        return None

    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"query.area_range must be [min, max], got {value!r}")

    lo, hi = float(value[0]), float(value[1])
    if lo > hi:
        raise ValueError(f"query.area_range: min must be <= max (got {lo} > {hi})")

    return lo, hi


def _parse_query(cfg: dict[str, Any]) -> QueryConfig:
    if not isinstance(cfg, dict):
        raise ValueError(f"query must be a dict, got {type(cfg)}")

    iscrowd = cfg.get("iscrowd", None)
    if iscrowd is not None and not isinstance(iscrowd, (bool, int)):
        raise ValueError(f"query.iscrowd must be true/false/null, got {iscrowd!r}")

    return QueryConfig(
        img_ids=tuple(int(x) for x in cfg.get("img_ids", None) or []),
        cat_ids=tuple(int(x) for x in cfg.get("cat_ids", None) or []),
        cat_names=tuple(str(x) for x in cfg.get("cat_names", None) or []),
        sup_names=tuple(str(x) for x in cfg.get("sup_names", None) or []),
        area_range=_parse_area_range(cfg.get("area_range", None)),
        iscrowd=None if iscrowd is None else bool(iscrowd))


def _parse_masks(cfg: dict[str, Any]) -> MasksConfig:
    if not isinstance(cfg, dict):
        raise ValueError(f"masks must be a dict, got {type(cfg)}")

    if (granularity := float(cfg.get("granularity", 1.0))) <= 0:
        raise ValueError(f"masks.granularity must be > 0 (got {granularity})")

    return MasksConfig(export_dir=_optional_path(cfg.get("export_dir", None)),
                       granularity=granularity)


def load_config(config_path: str | Path) -> AppConfig:
    """
    Load yaml config, validate essentials, and resolve dataset paths.
    """

    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    cfg = read_yaml(config_path) or {}

    # dataset
    dataset_cfg = cfg["dataset"]

    if (annotations := _optional_path(dataset_cfg.get("annotations", None))) is None:
        raise ValueError("dataset.annotations must point to a COCO annotation file")

    dataset = DatasetConfig(annotations=annotations,
                            results=_optional_path(dataset_cfg.get("results", None)))

    # query/masks
    query = _parse_query(cfg.get("query", None) or {})
    masks = _parse_masks(cfg.get("masks", None) or {})

    return AppConfig(
        dataset=dataset,
        query=query,
        masks=masks,
        raw=cfg)
