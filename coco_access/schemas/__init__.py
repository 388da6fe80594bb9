from .coco import (DatasetType,
                   Rle,
                   Polygons,
                   Segmentation,
                   CocoImage,
                   CocoCategory,
                   CocoAnnotation,
                   CocoDataset)
