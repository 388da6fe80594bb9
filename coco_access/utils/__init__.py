from .io import ensure_exists, read_yaml, read_json, write_npy, mask_output_path

from .coco import (parse_dataset,
                   parse_annotation,
                   parse_segmentation,
                   annotation_to_rle,
                   annotation_to_mask,
                   load_dataset)
