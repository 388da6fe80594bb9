import json
import yaml
import numpy as np
from typing import Any
from pathlib import Path


def ensure_exists(p: Path, what: str) -> None:
    if not p.exists():
        raise FileNotFoundError(f"{what} not found: {p}")


def read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f)


def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_npy(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    np.save(str(path), obj, allow_pickle=False)


def mask_output_path(export_dir: Path, image_id: int, ann_id: int) -> Path:
    """
    One .npy per annotation, grouped by image: <export_dir>/<image_id>/<ann_id>.npy
    """
    return export_dir / f"{image_id}" / f"{ann_id}.npy"
