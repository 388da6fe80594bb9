from enum import Enum
from typing import Optional, Any, Union
from dataclasses import dataclass, field

from ..errors import DataError


class DatasetType(str, Enum):
    INSTANCES = "instances"
    CAPTIONS = "captions"


@dataclass(frozen=True)
class Rle:
    """
    Uncompressed run-length encoding of a binary mask.
    counts alternate background/foreground runs over the column-major
    flattening, starting with background.
    """
    size: tuple[int, int]  # (h, w)
    counts: tuple[int, ...]


# list of polygons, each a flat [x0, y0, x1, y1, ...] sequence
Polygons = list[list[float]]
Segmentation = Union[Rle, Polygons]


@dataclass(frozen=True)
class CocoImage:
    id: int
    file_name: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None

    # every other field of the record, not interpreted here
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CocoCategory:
    id: int
    name: str
    supercategory: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CocoAnnotation:
    id: int
    image_id: int
    category_id: Optional[int] = None

    area: float = 0.0
    iscrowd: bool = False

    # instances only
    segmentation: Optional[Segmentation] = None

    # COCO bbox format (x, y, w, h) in pixels
    bbox: Optional[tuple[float, float, float, float]] = None

    # captions only
    caption: Optional[str] = None

    # result annotations only
    score: Optional[float] = None

    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CocoDataset:
    """
    Parsed dataset. categories is set for instances datasets and None for captions.
    """
    type: DatasetType
    images: tuple[CocoImage, ...]
    annotations: tuple[CocoAnnotation, ...]
    categories: Optional[tuple[CocoCategory, ...]] = None
    info: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.type is DatasetType.INSTANCES and self.categories is None:
            raise DataError("instances dataset requires a categories collection")

        if self.type is DatasetType.CAPTIONS and self.categories is not None:
            raise DataError("captions dataset must not carry categories")

    @property
    def is_instances(self) -> bool:
        return self.type is DatasetType.INSTANCES
