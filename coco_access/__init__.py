from .errors import CocoAccessError, DataError, NotFoundError, FormatError, MismatchError
from .schemas import (DatasetType,
                      Rle,
                      CocoImage,
                      CocoCategory,
                      CocoAnnotation,
                      CocoDataset)
from .coco_index import CocoIndex, build_coco_index
from .results import load_results
from .utils import parse_dataset, load_dataset, annotation_to_rle, annotation_to_mask
from . import mask_codec
