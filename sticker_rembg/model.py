from __future__ import annotations

import logging
import os
from typing import Any, Optional, Protocol

import numpy as np
import torch

logger = logging.getLogger(__name__)


class InferenceEngine(Protocol):
    """Anything that maps a (1,3,H,W) float32 tensor to a raw logit tensor."""

    def __call__(self, x: torch.Tensor) -> Any: ...


def get_device(name: Optional[str] = None) -> torch.device:
    """
    Pick the inference device: explicit name / REMBG_DEVICE, else CUDA -> MPS -> CPU.
    """
    name = name or os.getenv("REMBG_DEVICE")
    if name:
        return torch.device(name)
    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


class OnnxEngine:
    """
    ONNX Runtime session for U^2-Net style exports (u2net, u2net_human_seg, silueta).

    Only the first input and the first output of the graph are used.
    """

    def __init__(self, model_path: str, providers: Optional[list] = None, intra_threads: int = 4):
        if not os.path.exists(model_path):
            raise FileNotFoundError(f"Model not found: {model_path}")

        try:
            import onnxruntime as ort
        except Exception as e:  # noqa: BLE001
            raise RuntimeError("onnxruntime is not installed. Run: pip install onnxruntime") from e

        opts = ort.SessionOptions()
        opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        opts.intra_op_num_threads = int(intra_threads)
        self.model_path = model_path
        self.session = ort.InferenceSession(
            model_path,
            sess_options=opts,
            providers=providers or ["CPUExecutionProvider"],
        )
        self.input_name = self.session.get_inputs()[0].name
        logger.info("Loaded ONNX model %s (input=%s)", model_path, self.input_name)

    def __call__(self, x: torch.Tensor) -> np.ndarray:
        feed = x.detach().to("cpu").numpy().astype(np.float32, copy=False)
        outputs = self.session.run(None, {self.input_name: feed})
        if not outputs:
            raise RuntimeError("No output from model")
        return outputs[0]


class TorchScriptEngine:
    """
    TorchScript segmentation model saved via torch.jit.save (extension can be .pt/.pth).
    """

    def __init__(self, model_path: str, device: Optional[torch.device] = None):
        if device is None:
            device = get_device()

        if not os.path.exists(model_path):
            raise FileNotFoundError(f"Model not found: {model_path}")

        try:
            # Load on CPU first, then explicitly cast to float32.
            model = torch.jit.load(model_path, map_location="cpu")
        except Exception as e:  # noqa: BLE001 - surface a helpful error
            raise RuntimeError(
                "Failed to load model. Expected a TorchScript module saved with torch.jit.save(); "
                "a plain state_dict must be exported to TorchScript first."
            ) from e

        model.eval()
        for p in model.parameters():
            p.requires_grad_(False)
        model = model.to(dtype=torch.float32)
        model.to(device)

        self.model_path = model_path
        self.model = model
        self.device = device
        logger.info("Loaded TorchScript model %s on %s", model_path, device)

    def __call__(self, x: torch.Tensor) -> Any:
        with torch.no_grad():
            return self.model(x.to(self.device))


def load_engine(model_path: str, device: Optional[torch.device] = None) -> InferenceEngine:
    """
    Build an engine from a model file: .onnx -> ONNX Runtime, anything else -> TorchScript.
    """
    if model_path.lower().endswith(".onnx"):
        return OnnxEngine(model_path)
    return TorchScriptEngine(model_path, device=device)
