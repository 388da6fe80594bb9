import time
import numpy as np
from typing import Iterable, Optional, Sequence, Union

from .errors import DataError, NotFoundError
from .schemas.coco import (CocoAnnotation,
                           CocoCategory,
                           CocoDataset,
                           CocoImage,
                           DatasetType)

IdFilter = Optional[Union[int, Iterable[int]]]
NameFilter = Optional[Union[str, Iterable[str]]]

NO_CATEGORY = -1


def _as_list(values) -> list:
    """
    None -> [], scalar -> [scalar], iterable -> list
    """
    if values is None:
        return []
    if isinstance(values, (str, int, np.integer)):
        return [values]
    return list(values)


def _make_position_map(ids: Sequence[int], what: str) -> dict[int, int]:
    """
    id -> position in its collection. Duplicate ids are a data error.
    """
    pos: dict[int, int] = {}
    for i, id_ in enumerate(ids):
        if id_ in pos:
            raise DataError(f"Duplicate {what} id: {id_}")
        pos[id_] = i
    return pos


class CocoIndex:
    """
    Read-only lookup structures over a CocoDataset.

    Built once by build_coco_index(); queries never mutate it. Any change to the
    underlying dataset requires building a new index.
    """

    def __init__(self,
                 dataset: CocoDataset,
                 ann_pos: dict[int, int],
                 img_pos: dict[int, int],
                 cat_pos: Optional[dict[int, int]],
                 img_to_ann_ids: dict[int, list[int]],
                 cat_to_img_ids: Optional[dict[int, list[int]]]):
        self._dataset = dataset

        # id -> position
        self._ann_pos = ann_pos
        self._img_pos = img_pos
        self._cat_pos = cat_pos

        # one-to-many maps
        self._img_to_ann_ids = img_to_ann_ids
        self._cat_to_img_ids = cat_to_img_ids
        self._cat_to_img_sets = None
        if cat_to_img_ids is not None:
            self._cat_to_img_sets = {c: set(ids) for c, ids in cat_to_img_ids.items()}

        # parallel attribute arrays, one slot per annotation
        anns = dataset.annotations
        self._ann_ids = np.array([a.id for a in anns], dtype=np.int64)
        self._ann_img_ids = np.array([a.image_id for a in anns], dtype=np.int64)

        if dataset.is_instances:
            # results may come without a category
            self._ann_cat_ids = np.array([NO_CATEGORY if a.category_id is None else a.category_id for a in anns],
                                         dtype=np.int64)
            self._ann_areas = np.array([a.area for a in anns], dtype=np.float64)
            self._ann_iscrowd = np.array([a.iscrowd for a in anns], dtype=bool)
        else:
            self._ann_cat_ids = self._ann_areas = self._ann_iscrowd = None

    # dataset views

    @property
    def dataset(self) -> CocoDataset:
        return self._dataset

    @property
    def type(self) -> DatasetType:
        return self._dataset.type

    @property
    def ann_ids(self) -> list[int]:
        return [a.id for a in self._dataset.annotations]

    @property
    def img_ids(self) -> list[int]:
        return [im.id for im in self._dataset.images]

    @property
    def cat_ids(self) -> list[int]:
        self._require_instances("cat_ids")
        return [c.id for c in self._dataset.categories]

    def __len__(self) -> int:
        return len(self._dataset.annotations)

    def ann_ids_for_image(self, img_id: int) -> list[int]:
        if (ids := self._img_to_ann_ids.get(img_id, None)) is None:
            raise NotFoundError(f"image id not found in index: {img_id}")
        return list(ids)

    def img_ids_for_category(self, cat_id: int) -> list[int]:
        self._require_instances("img_ids_for_category")
        if (ids := self._cat_to_img_ids.get(cat_id, None)) is None:
            raise NotFoundError(f"category id not found in index: {cat_id}")
        return list(ids)

    def summary(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "images": len(self._dataset.images),
            "annotations": len(self._dataset.annotations),
            "categories": len(self._dataset.categories) if self._dataset.is_instances else 0,
        }

    def _require_instances(self, what: str):
        if not self._dataset.is_instances:
            raise DataError(f"{what} is only defined for instances datasets "
                            f"(this one is `{self.type.value}`)")

    # queries

    def get_ann_ids(self,
                    img_ids: IdFilter = None,
                    cat_ids: IdFilter = None,
                    area_rng: Optional[Sequence[float]] = None,
                    iscrowd: Optional[bool] = None) -> list[int]:
        """
        Annotation ids satisfying every supplied filter. None/empty skips a filter.

        img_ids:  annotations on the given images
        cat_ids:  annotations of the given categories
        area_rng: (min, max), inclusive on both ends
        iscrowd:  crowd flag equality

        Ids are returned in source order: the image's own list for a single image id,
        global annotation order otherwise.
        """
        img_ids = _as_list(img_ids)
        cat_ids = _as_list(cat_ids)
        area_rng = _as_list(area_rng)

        if cat_ids or area_rng or iscrowd is not None:
            self._require_instances("filtering annotations by category/area/crowd")

        if area_rng and len(area_rng) != 2:
            raise ValueError(f"area_rng must be (min, max), got {area_rng}")

        # single image: scan only that image's annotations
        if len(img_ids) == 1:
            anns = self.load_anns(self.ann_ids_for_image(img_ids[0]))

            if cat_ids:
                cat_set = set(cat_ids)
                anns = [a for a in anns if a.category_id in cat_set]

            if area_rng:
                lo, hi = float(area_rng[0]), float(area_rng[1])
                anns = [a for a in anns if lo <= a.area <= hi]

            if iscrowd is not None:
                anns = [a for a in anns if a.iscrowd == bool(iscrowd)]

            return [a.id for a in anns]

        keep = np.ones(self._ann_ids.shape[0], dtype=bool)

        if img_ids:
            keep &= np.isin(self._ann_img_ids, np.asarray(img_ids, dtype=np.int64))

        if cat_ids:
            keep &= np.isin(self._ann_cat_ids, np.asarray(cat_ids, dtype=np.int64))
            keep &= self._ann_cat_ids != NO_CATEGORY

        if area_rng:
            lo, hi = float(area_rng[0]), float(area_rng[1])
            keep &= (self._ann_areas >= lo) & (self._ann_areas <= hi)

        if iscrowd is not None:
            keep &= self._ann_iscrowd == bool(iscrowd)

        return [int(i) for i in self._ann_ids[keep]]

    def get_cat_ids(self,
                    cat_nms: NameFilter = None,
                    sup_nms: NameFilter = None,
                    cat_ids: IdFilter = None) -> list[int]:
        """
        Category ids matching the given names, supercategory names and ids (AND-combined),
        in collection order.
        """
        self._require_instances("get_cat_ids")

        cat_nms = set(_as_list(cat_nms))
        sup_nms = set(_as_list(sup_nms))
        cat_ids = set(_as_list(cat_ids))

        cats: Iterable[CocoCategory] = self._dataset.categories

        if cat_nms:
            cats = [c for c in cats if c.name in cat_nms]
        if sup_nms:
            cats = [c for c in cats if c.supercategory in sup_nms]
        if cat_ids:
            cats = [c for c in cats if c.id in cat_ids]

        return [c.id for c in cats]

    def get_img_ids(self, img_ids: IdFilter = None, cat_ids: IdFilter = None) -> list[int]:
        """
        Image ids within img_ids (if given) that contain ALL of cat_ids (if given),
        in image collection order.
        """
        img_ids = _as_list(img_ids)
        cat_ids = _as_list(cat_ids)

        ids = self.img_ids
        if img_ids:
            wanted = set(img_ids)
            ids = [i for i in ids if i in wanted]

        if not cat_ids:
            return ids

        self._require_instances("filtering images by category")

        for cat_id in cat_ids:
            if (imgs := self._cat_to_img_sets.get(cat_id, None)) is None:
                raise NotFoundError(f"category id not found in index: {cat_id}")
            ids = [i for i in ids if i in imgs]

        return ids

    def load_anns(self, ids: IdFilter) -> list[CocoAnnotation]:
        return [self._dataset.annotations[p] for p in self._positions(self._ann_pos, ids, "annotation")]

    def load_cats(self, ids: IdFilter) -> list[CocoCategory]:
        self._require_instances("load_cats")
        return [self._dataset.categories[p] for p in self._positions(self._cat_pos, ids, "category")]

    def load_imgs(self, ids: IdFilter) -> list[CocoImage]:
        return [self._dataset.images[p] for p in self._positions(self._img_pos, ids, "image")]

    @staticmethod
    def _positions(pos_map: dict[int, int], ids: IdFilter, what: str) -> list[int]:
        out: list[int] = []
        for id_ in _as_list(ids):
            if (p := pos_map.get(int(id_), None)) is None:
                raise NotFoundError(f"{what} id not found in index: {id_}")
            out.append(p)
        return out


def build_coco_index(dataset: CocoDataset) -> CocoIndex:
    """
    Build every lookup structure in one pass over the dataset.
    Raises DataError on duplicate ids or dangling image/category references.
    """
    print("creating index...", end=" ", flush=True)
    t0 = time.perf_counter()

    anns = dataset.annotations

    ann_pos = _make_position_map([a.id for a in anns], "annotation")
    img_pos = _make_position_map([im.id for im in dataset.images], "image")

    # image -> annotation ids, including images without annotations
    img_to_ann_ids: dict[int, list[int]] = {im.id: [] for im in dataset.images}
    for ann in anns:
        if ann.image_id not in img_to_ann_ids:
            raise DataError(f"annotation {ann.id} references unknown image id {ann.image_id}")
        img_to_ann_ids[ann.image_id].append(ann.id)

    cat_pos = None
    cat_to_img_ids = None

    if dataset.is_instances:
        cat_pos = _make_position_map([c.id for c in dataset.categories], "category")

        # category -> de-duplicated image ids, ordered by first appearance
        cat_to_img_ids = {c.id: [] for c in dataset.categories}
        seen: dict[int, set[int]] = {c.id: set() for c in dataset.categories}

        for ann in anns:
            # uncategorized annotations (e.g. class-agnostic results) stay out of the category map
            if ann.category_id is None:
                continue

            if ann.category_id not in cat_to_img_ids:
                raise DataError(f"annotation {ann.id} references unknown category id {ann.category_id}")

            if ann.image_id not in seen[ann.category_id]:
                seen[ann.category_id].add(ann.image_id)
                cat_to_img_ids[ann.category_id].append(ann.image_id)

    index = CocoIndex(dataset=dataset,
                      ann_pos=ann_pos,
                      img_pos=img_pos,
                      cat_pos=cat_pos,
                      img_to_ann_ids=img_to_ann_ids,
                      cat_to_img_ids=cat_to_img_ids)

    print(f"index created (t={time.perf_counter() - t0:.2f}s)")
    return index
