from __future__ import annotations

from typing import Tuple, Union

import numpy as np
import torch
from PIL import Image, UnidentifiedImageError

from .config import IMAGENET_MEAN, IMAGENET_STD, MODEL_INPUT_SIZE
from .errors import InvalidInputError

ImageLike = Union[np.ndarray, Image.Image]


def load_image(path: str) -> np.ndarray:
    """
    Load an image as uint8 ndarray.

    Images carrying transparency come back as RGBA (H, W, 4), everything else as RGB (H, W, 3).
    """
    try:
        img = Image.open(path)
        img.load()
    except (FileNotFoundError, UnidentifiedImageError, OSError) as e:
        raise InvalidInputError(f"Could not read image: {path}") from e

    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        return np.array(img.convert("RGBA"), dtype=np.uint8)
    return np.array(img.convert("RGB"), dtype=np.uint8)


def _as_array(image: ImageLike) -> np.ndarray:
    if isinstance(image, Image.Image):
        mode = "RGBA" if image.mode in ("RGBA", "LA", "P") else "RGB"
        return np.array(image.convert(mode), dtype=np.uint8)
    arr = np.asarray(image)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise InvalidInputError(f"Expected RGB/RGBA image (H,W,3|4), got shape={arr.shape}")
    if arr.shape[0] <= 0 or arr.shape[1] <= 0:
        raise InvalidInputError(f"Invalid image size: {arr.shape[:2]}")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    return arr


def to_rgb(image: ImageLike) -> np.ndarray:
    """Drop alpha (if any) and return uint8 (H, W, 3)."""
    arr = _as_array(image)
    return np.ascontiguousarray(arr[..., :3])


def to_rgba(image: ImageLike) -> np.ndarray:
    """Return uint8 (H, W, 4); RGB inputs get a fully opaque alpha channel."""
    arr = _as_array(image)
    if arr.shape[2] == 4:
        return arr.copy()
    alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([arr, alpha], axis=-1)


def resize_lanczos(img: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resize a uint8 image/plane with a 3-lobe Lanczos filter.

    Same-size requests return a straight copy.
    """
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Invalid target size: {(width, height)}")
    if img.shape[1] == width and img.shape[0] == height:
        return img.copy()
    resized = Image.fromarray(img).resize((int(width), int(height)), Image.Resampling.LANCZOS)
    return np.array(resized, dtype=np.uint8)


def normalize(img: np.ndarray) -> torch.Tensor:
    """
    Normalize uint8 RGB image to float32 torch tensor: (1,3,H,W).
    """
    if img.ndim != 3 or img.shape[2] != 3:
        raise InvalidInputError(f"Expected RGB image (H,W,3), got shape={img.shape}")
    x = img.astype(np.float32) / 255.0
    mean = np.array(IMAGENET_MEAN, dtype=np.float32).reshape(1, 1, 3)
    std = np.array(IMAGENET_STD, dtype=np.float32).reshape(1, 1, 3)
    x = (x - mean) / std
    x = np.transpose(x, (2, 0, 1))  # CHW
    t = torch.from_numpy(np.ascontiguousarray(x)).unsqueeze(0).contiguous()  # NCHW
    if t.dtype != torch.float32:
        t = t.float()
    return t


def preprocess(
    image: ImageLike,
    target_width: int = MODEL_INPUT_SIZE,
    target_height: int = MODEL_INPUT_SIZE,
) -> torch.Tensor:
    """
    Full model-input preparation:
      1) drop alpha -> RGB
      2) Lanczos resize to (target_width, target_height), any aspect ratio
      3) ImageNet normalization, channel-first (1,3,H,W) float32
    """
    if int(target_width) <= 0 or int(target_height) <= 0:
        raise InvalidInputError(f"Target size must be positive, got {(target_width, target_height)}")
    rgb = to_rgb(image)
    resized = resize_lanczos(rgb, int(target_width), int(target_height))
    return normalize(resized)


def image_size(image: ImageLike) -> Tuple[int, int]:
    """(width, height) of an ndarray or PIL image."""
    if isinstance(image, Image.Image):
        return image.size
    arr = np.asarray(image)
    return int(arr.shape[1]), int(arr.shape[0])
