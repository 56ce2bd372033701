from __future__ import annotations

from typing import Any, Union

import numpy as np
import torch

from .errors import InferenceError, RembgError, ShapeError
from .model import InferenceEngine

Logits = Union[torch.Tensor, np.ndarray]


def _extract_primary_output(y: Any) -> Any:
    """
    Segmentation engines may return:
      - a single tensor / ndarray
      - (tensor, ...) tuple/list (U^2-Net puts the fused map first, BiRefNet-style models last)
      - dict with tensor fields

    Sequences: the first array-like wins (U^2-Net d0 is the fused output).
    """
    if isinstance(y, (torch.Tensor, np.ndarray)):
        return y
    if isinstance(y, (list, tuple)) and len(y) > 0:
        for item in y:
            if isinstance(item, (torch.Tensor, np.ndarray)):
                return item
        return y[0]
    if isinstance(y, dict) and y:
        # Prefer common logits keys if present.
        for k in ("logits", "pred", "alpha", "mask"):
            v = y.get(k, None)
            if isinstance(v, (torch.Tensor, np.ndarray)):
                return v
        for v in y.values():
            if isinstance(v, (torch.Tensor, np.ndarray)):
                return v
        return next(iter(y.values()))
    return y


def predict_logits(engine: InferenceEngine, x: torch.Tensor) -> Logits:
    """
    Forward pass through the external engine.

    Output is the raw (unbounded) logit tensor; rank/shape checks happen in postprocess.
    A malformed input tensor raises ShapeError; any engine failure surfaces as InferenceError.
    """
    if x.dtype != torch.float32:
        x = x.float()
    if x.ndim != 4 or x.shape[0] != 1 or x.shape[1] != 3:
        raise ShapeError(f"Expected input tensor (1,3,H,W), got {tuple(x.shape)}")

    try:
        with torch.no_grad():
            y = engine(x)
    except RembgError:
        raise
    except Exception as e:  # noqa: BLE001 - engine internals are opaque
        raise InferenceError(f"Inference engine failed: {e}") from e

    y = _extract_primary_output(y)
    if not isinstance(y, (torch.Tensor, np.ndarray)):
        raise InferenceError(f"Model output is not a tensor: {type(y)}")
    return y
