import cv2
import numpy as np
from typing import Any, Sequence

from .errors import FormatError
from .schemas.coco import Rle


def rle_from_dict(obj: dict[str, Any]) -> Rle:
    """
    Plain {"size": [h, w], "counts": [...]} -> Rle.
    Only uncompressed counts are accepted here; compressed strings go through utils.coco.
    """
    try:
        h, w = obj["size"]
        counts = obj["counts"]
    except (KeyError, TypeError, ValueError) as e:
        raise FormatError(f"RLE must carry size=[h, w] and counts (got {obj!r})") from e

    if isinstance(counts, (str, bytes)):
        raise FormatError("compressed RLE counts are not supported by rle_from_dict")

    return Rle(size=(int(h), int(w)), counts=tuple(int(c) for c in counts))


def rle_to_dict(rle: Rle) -> dict[str, list[int]]:
    return {"size": [rle.size[0], rle.size[1]], "counts": list(rle.counts)}


def decode(rle: Rle) -> np.ndarray:
    """
    RLE -> HxW uint8 mask of {0, 1}.

    Even-position runs are background, odd-position runs foreground,
    laid out over the column-major flattening.
    """
    h, w = rle.size
    counts = np.asarray(rle.counts, dtype=np.int64)

    if counts.size and counts.min() < 0:
        raise FormatError(f"RLE counts must be non-negative: {list(rle.counts)}")

    if (total := int(counts.sum())) != h * w:
        raise FormatError(f"RLE counts sum to {total}, expected {h}*{w}={h * w}")

    values = (np.arange(counts.size) % 2).astype(np.uint8)
    flat = np.repeat(values, counts)

    return np.ascontiguousarray(flat.reshape((h, w), order="F"))


def encode(mask: np.ndarray) -> Rle:
    """
    HxW mask -> RLE. Any non-zero pixel is foreground.
    Exact inverse of decode for binary masks.
    """
    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise FormatError(f"mask must be 2-D, got shape {mask.shape}")

    h, w = mask.shape
    if mask.size == 0:
        return Rle(size=(int(h), int(w)), counts=())

    flat = (mask != 0).ravel(order="F")

    # run ends: every value change plus the end of the buffer
    ends = np.flatnonzero(flat[1:] != flat[:-1]) + 1
    ends = np.append(ends, flat.size)
    counts = np.diff(ends, prepend=0)

    # counts always start with a background run
    if flat[0]:
        counts = np.insert(counts, 0, 0)

    return Rle(size=(int(h), int(w)), counts=tuple(int(c) for c in counts))


def area(rle: Rle) -> int:
    """
    Foreground pixel count, read straight from the odd-position runs.
    """
    return int(sum(rle.counts[1::2]))


def bbox_to_polygon(bbox: Sequence[float]) -> list[float]:
    """
    (x, y, w, h) -> 4-point rectangle [x1, y1, x1, y2, x2, y2, x2, y1]
    """
    if len(bbox) != 4:
        raise FormatError(f"bbox must be [x, y, w, h], got {list(bbox)}")

    x, y, w, h = (float(v) for v in bbox)
    x1, x2, y1, y2 = x, x + w, y, y + h

    return [x1, y1, x1, y2, x2, y2, x2, y1]


def _fill_polygon(xs: np.ndarray, ys: np.ndarray, height: int, width: int) -> np.ndarray:
    """
    Even-odd scanline fill. Pixel (r, c) is tested at its center (c + 1, r + 1),
    i.e. the polygon vertices are expected in 1-indexed pixel coordinates.
    """
    out = np.zeros((height, width), dtype=np.float32)
    if xs.size < 3:
        return out

    x0, y0 = xs, ys
    x1, y1 = np.roll(xs, -1), np.roll(ys, -1)

    r_start = max(int(np.ceil(ys.min())) - 1, 0)
    r_stop = min(int(np.ceil(ys.max())) - 1, height)

    for r in range(r_start, r_stop):
        yc = r + 1.0

        # half-open on y so vertices are counted once and horizontal edges never cross
        crossing = ((y0 <= yc) & (yc < y1)) | ((y1 <= yc) & (yc < y0))
        if not crossing.any():
            continue

        t = (yc - y0[crossing]) / (y1[crossing] - y0[crossing])
        xc = np.sort(x0[crossing] + t * (x1[crossing] - x0[crossing]))

        # inside span: xa <= c + 1 < xb
        for xa, xb in zip(xc[0::2], xc[1::2]):
            c0 = max(int(np.ceil(xa)) - 1, 0)
            c1 = min(int(np.ceil(xb)) - 1, width)
            if c1 > c0:
                out[r, c0:c1] = 1.0

    return out


def polygon_to_mask(
        polygons: Sequence[Sequence[float]],
        height: int,
        width: int,
        granularity: float = 1) -> np.ndarray:
    """
    Rasterize polygons (0-indexed, flat x,y sequences) into an HxW float32 mask.

    Polygon fills are summed, so overlapping polygons give values > 1.
    With granularity g != 1 the polygons are filled on a (H*g)x(W*g) grid and the
    sum is area-averaged back to HxW.
    """
    if granularity <= 0:
        raise ValueError(f"granularity must be > 0 (got {granularity})")

    g = float(granularity)
    gh = int(round(height * g))
    gw = int(round(width * g))

    acc = np.zeros((gh, gw), dtype=np.float32)

    for poly in polygons:
        coords = np.asarray(poly, dtype=np.float64).ravel()

        if coords.size % 2:
            raise FormatError(f"polygon needs an even number of coordinates, got {coords.size}")

        xs = (coords[0::2] + 1.0) * g
        ys = (coords[1::2] + 1.0) * g
        acc += _fill_polygon(xs, ys, gh, gw)

    if g == 1.0:
        return acc

    if height <= 0 or width <= 0 or acc.size == 0:
        return np.zeros((max(height, 0), max(width, 0)), dtype=np.float32)

    return cv2.resize(acc, (width, height), interpolation=cv2.INTER_AREA)
