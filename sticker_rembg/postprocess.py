from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
import torch

from .config import HEATMAP_GAMMA, HEATMAP_GAMMA_RANGE, HEATMAP_STOPS
from .errors import InferenceError, InvalidInputError, ShapeError
from .inference import Logits
from .preprocess import resize_lanczos


def logits_to_plane(logits: Logits) -> torch.Tensor:
    """
    Reduce an engine output to a single (H,W) logit plane.

    Accepted: (1,1,H,W), (1,C,H,W), (C,H,W), (H,W). Leading batch/channel axes are
    indexed at 0.
    """
    if isinstance(logits, np.ndarray):
        # torch rejects negative strides (flipped views)
        logits = np.ascontiguousarray(logits)
    y = torch.as_tensor(logits)
    if y.ndim < 2 or y.ndim > 4:
        raise ShapeError(f"Unexpected output tensor shape: {tuple(y.shape)} (expected rank 2-4)")
    while y.ndim > 2:
        if y.shape[0] == 0:
            raise ShapeError(f"Empty leading axis in output tensor: {tuple(y.shape)}")
        y = y[0]
    if y.numel() == 0:
        raise ShapeError(f"Logit plane is empty: {tuple(y.shape)}")
    return y


def sigmoid_to_u8(plane: torch.Tensor) -> np.ndarray:
    """
    logits -> probability -> uint8 mask: round(sigmoid(x) * 255), clamped to [0,255].

    Rounding is half-up, so a zero logit maps to 128.
    """
    p = torch.sigmoid(plane.detach().to("cpu", dtype=torch.float64))
    if torch.isnan(p).any():
        raise InferenceError("NaNs detected in predicted logits.")
    q = torch.floor(p * 255.0 + 0.5).clamp_(0.0, 255.0)
    return q.numpy().astype(np.uint8)


def resize_mask(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Lanczos resize of an 8-bit plane; a same-size request is a straight copy."""
    if mask.ndim != 2:
        raise ShapeError(f"Expected 2D mask, got shape={mask.shape}")
    return resize_lanczos(mask, width, height)


def _check_target(width: int, height: int) -> Tuple[int, int]:
    if int(width) <= 0 or int(height) <= 0:
        raise InvalidInputError(f"Invalid original size: {(width, height)}")
    return int(width), int(height)


def reconstruct_mask(logits: Logits, original_width: int, original_height: int) -> np.ndarray:
    """
    Engine logits -> uint8 probability mask (original_height, original_width).

    Steps:
      1) shape-normalize to one (H,W) plane
      2) sigmoid + 8-bit quantization
      3) Lanczos resize of the quantized plane, only when the resolution differs

    Resizing after quantization (not on the float plane) is a compatibility contract.
    """
    width, height = _check_target(original_width, original_height)
    plane = logits_to_plane(logits)
    mask = sigmoid_to_u8(plane)
    return resize_mask(mask, width, height)


def _lerp(a: Sequence[int], b: Sequence[int], t: float) -> Tuple[int, int, int]:
    return tuple(int(math.floor(ca + (cb - ca) * t + 0.5)) for ca, cb in zip(a, b))  # type: ignore[return-value]


def colormap(t: float) -> Tuple[int, int, int]:
    """Probability in [0,1] -> RGB along the black..white heat ramp."""
    t = min(max(float(t), 0.0), 1.0)
    for (t0, c0), (t1, c1) in zip(HEATMAP_STOPS, HEATMAP_STOPS[1:]):
        if t <= t1:
            local = (t - t0) / (t1 - t0) if t1 > t0 else 0.0
            return _lerp(c0, c1, local)
    return HEATMAP_STOPS[-1][1]


def heatmap_lut(gamma: float = HEATMAP_GAMMA) -> np.ndarray:
    """(256,3) uint8 lookup table indexed by the quantized mask value."""
    lo, hi = HEATMAP_GAMMA_RANGE
    g = min(max(float(gamma), lo), hi)
    lut = np.zeros((256, 3), dtype=np.uint8)
    for i in range(256):
        lut[i] = colormap((i / 255.0) ** g)
    return lut


def render_heatmap(
    logits: Logits,
    original_width: int,
    original_height: int,
    gamma: float = HEATMAP_GAMMA,
) -> np.ndarray:
    """
    Diagnostic "thermal" view of the mask: uint8 RGB (original_height, original_width, 3).

    Shares plane reduction, sigmoid quantization and Lanczos resize with reconstruct_mask;
    only the channel expansion (LUT instead of gray) differs.
    """
    width, height = _check_target(original_width, original_height)
    plane = logits_to_plane(logits)
    mask = sigmoid_to_u8(plane)
    heat = heatmap_lut(gamma)[mask]
    return resize_lanczos(heat, width, height)
