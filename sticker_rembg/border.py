from __future__ import annotations

import cv2
import numpy as np

from .config import OUTLINE_FEATHER_PX, OUTLINE_MIN_ALPHA, OUTLINE_STROKE_PX, STICKER_ALPHA_FLOOR
from .errors import InvalidInputError
from .preprocess import ImageLike, _as_array


def smoothstep(e0: float, e1: float, x: np.ndarray) -> np.ndarray:
    """Cubic Hermite 3t^2 - 2t^3 with t = clamp((x - e0) / (e1 - e0), 0, 1)."""
    if e1 <= e0:
        return (np.asarray(x) >= e1).astype(np.float64)
    t = np.clip((np.asarray(x, dtype=np.float64) - e0) / (e1 - e0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def inside_mask(alpha: np.ndarray, floor: int = STICKER_ALPHA_FLOOR) -> np.ndarray:
    """Sticker body: alpha >= floor (lower values are compositing dust)."""
    return np.asarray(alpha) >= int(floor)


def distance_to_inside(inside: np.ndarray) -> np.ndarray:
    """
    Euclidean distance (float32, pixels) from every pixel to the nearest inside pixel.

    Inside pixels are 0. Without any inside pixel every distance is +inf.
    """
    if not inside.any():
        return np.full(inside.shape, np.inf, dtype=np.float32)
    # distanceTransform measures distance to the nearest zero pixel.
    src = np.where(inside, 0, 255).astype(np.uint8)
    return cv2.distanceTransform(src, cv2.DIST_L2, cv2.DIST_MASK_PRECISE)


def outline_alpha(
    dist: np.ndarray,
    stroke: float = OUTLINE_STROKE_PX,
    feather: float = OUTLINE_FEATHER_PX,
    min_alpha: int = OUTLINE_MIN_ALPHA,
) -> np.ndarray:
    """
    Outline alpha (uint8) as a function of distance:
      - full strength for d <= stroke
      - 1 - smoothstep over (stroke, stroke + feather)
      - 0 beyond; values below min_alpha snap to 0
    """
    d = np.asarray(dist, dtype=np.float64)
    a01 = np.where(d <= stroke, 1.0, 1.0 - smoothstep(stroke, stroke + feather, d))
    a = np.clip(np.floor(a01 * 255.0 + 0.5), 0.0, 255.0)
    a[a < min_alpha] = 0.0
    return a.astype(np.uint8)


def clean_border(
    image: ImageLike,
    stroke: float = OUTLINE_STROKE_PX,
    feather: float = OUTLINE_FEATHER_PX,
) -> np.ndarray:
    """
    Add a soft black outline strictly OUTSIDE a cut-out sticker.

    Steps:
      1) inside = alpha >= 16
      2) L2 distance from outside pixels to the sticker
      3) outline alpha profile (stroke + feather)
      4) sticker composited over the outline ("over"); inside pixels copied as-is
    """
    img = _as_array(image)
    if img.shape[2] != 4:
        raise InvalidInputError(f"Expected RGBA image (H,W,4), got shape={img.shape}")
    if stroke < 0 or feather < 0:
        raise InvalidInputError(f"stroke/feather must be >= 0, got {(stroke, feather)}")

    inside = inside_mask(img[..., 3])
    dist = distance_to_inside(inside)

    ba = outline_alpha(dist, stroke=stroke, feather=feather).astype(np.float64) / 255.0
    ba[inside] = 0.0

    top = img.astype(np.float64)
    ta = top[..., 3] / 255.0
    oa = ta + ba * (1.0 - ta)

    # Outline RGB is black, so only the sticker term survives in the premultiplied sum.
    safe = np.where(oa > 0.0, oa, 1.0)
    rgb = top[..., :3] * ta[..., None] / safe[..., None]
    rgb[oa <= 0.0] = 0.0

    out = np.empty_like(img)
    out[..., :3] = np.clip(np.floor(rgb + 0.5), 0.0, 255.0).astype(np.uint8)
    out[..., 3] = np.clip(np.floor(oa * 255.0 + 0.5), 0.0, 255.0).astype(np.uint8)
    out[inside] = img[inside]
    return out
