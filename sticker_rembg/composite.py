from __future__ import annotations

import logging
import os
from pathlib import Path

import numpy as np
from PIL import Image

from .config import JPEG_QUALITY
from .contracts import RemovalOptions
from .errors import PreprocessingError, UnsupportedFormatError
from .preprocess import ImageLike, to_rgba

logger = logging.getLogger(__name__)


def compute_alpha(mask: np.ndarray, threshold: int, binary: bool) -> np.ndarray:
    """
    Per-pixel alpha from a uint8 mask and a 0..255 threshold.

    - binary: 255 where mask >= threshold, else 0
    - smooth (threshold < 255): linear ramp, threshold -> 0 and 255 -> 255, values below
      threshold fully transparent
    - smooth (threshold == 255): only mask == 255 is opaque
    """
    m = np.asarray(mask)
    t = int(threshold)
    if binary:
        return np.where(m >= t, 255, 0).astype(np.uint8)
    if t >= 255:
        return np.where(m == 255, 255, 0).astype(np.uint8)

    ramp = (m.astype(np.float64) - float(t)) * 255.0 / (255.0 - float(t))
    return np.clip(np.floor(ramp + 0.5), 0.0, 255.0).astype(np.uint8)


def apply_mask(original: ImageLike, mask: np.ndarray, options: RemovalOptions) -> np.ndarray:
    """
    Synthesize alpha for `original` from `mask`; RGB is passed through unchanged.

    Returns uint8 (H, W, 4). The mask must already be at the image resolution.
    """
    rgba = to_rgba(original)
    mask = np.asarray(mask)
    if mask.ndim != 2 or mask.shape != rgba.shape[:2]:
        raise PreprocessingError(
            f"Mask dimensions {mask.shape} don't match original image {rgba.shape[:2]}"
        )

    out = np.empty_like(rgba)
    out[..., :3] = rgba[..., :3]
    out[..., 3] = compute_alpha(mask, options.threshold, options.binary)
    return out


def mask_to_rgba(mask: np.ndarray) -> np.ndarray:
    """White RGBA image whose alpha is the mask value (white = opaque, black = transparent)."""
    if mask.ndim != 2:
        raise PreprocessingError(f"Expected 2D mask, got shape={mask.shape}")
    rgba = np.full(mask.shape + (4,), 255, dtype=np.uint8)
    rgba[..., 3] = mask
    return rgba


def flatten_on_white(rgba: np.ndarray) -> np.ndarray:
    """Blend an RGBA image over white -> uint8 RGB (JPEG has no alpha)."""
    a = rgba[..., 3:4].astype(np.float32) / 255.0
    rgb = rgba[..., :3].astype(np.float32) * a + 255.0 * (1.0 - a)
    return np.clip(rgb, 0.0, 255.0).astype(np.uint8)


def _extension(path: str) -> str:
    ext = Path(path).suffix.lower().lstrip(".")
    if not ext:
        raise UnsupportedFormatError("unknown")
    return ext


def save_image(rgba: np.ndarray, out_path: str, quality: int = JPEG_QUALITY) -> None:
    """
    Encode an RGBA result by extension:
      - png / webp: lossless RGBA
      - jpg / jpeg: flattened over white
    """
    ext = _extension(out_path)
    if ext not in ("png", "jpg", "jpeg", "webp"):
        raise UnsupportedFormatError(ext)
    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    if ext == "png":
        Image.fromarray(rgba).save(out_path, format="PNG", optimize=False)
    elif ext in ("jpg", "jpeg"):
        Image.fromarray(flatten_on_white(rgba)).save(out_path, format="JPEG", quality=int(quality))
    else:
        Image.fromarray(rgba).save(out_path, format="WEBP", lossless=True)
    logger.debug("Saved %s (%dx%d)", out_path, rgba.shape[1], rgba.shape[0])


def save_mask(mask: np.ndarray, out_path: str, quality: int = JPEG_QUALITY) -> None:
    """Save the mask as a transparent white RGBA image."""
    save_image(mask_to_rgba(mask), out_path, quality=quality)


def mask_path_for(out_path: str, suffix: str = "_mask") -> str:
    """'out/cat.png' -> 'out/cat_mask.png'."""
    p = Path(out_path)
    ext = p.suffix or ".png"
    return str(p.with_name(f"{p.stem}{suffix}{ext}"))
