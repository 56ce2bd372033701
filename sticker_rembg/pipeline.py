from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .border import clean_border
from .composite import apply_mask, mask_path_for, save_image, save_mask
from .config import JPEG_QUALITY, MODEL_INPUT_SIZE
from .contracts import RemovalOptions, RemovalResult
from .inference import predict_logits
from .model import InferenceEngine
from .postprocess import reconstruct_mask, render_heatmap
from .preprocess import ImageLike, image_size, load_image, preprocess, to_rgba

logger = logging.getLogger(__name__)

StageObserver = Callable[[str, float], None]


@dataclass(frozen=True)
class StageTimings:
    preprocess_s: float
    inference_s: float
    postprocess_s: float
    composite_s: float
    outline_s: float
    total_s: float


class _StageClock:
    """Collects per-stage durations and forwards them to the optional observer."""

    def __init__(self, observer: Optional[StageObserver]):
        self.observer = observer
        self.durations = {}
        self._t = time.perf_counter()

    def lap(self, stage: str) -> None:
        now = time.perf_counter()
        elapsed = now - self._t
        self._t = now
        self.durations[stage] = elapsed
        logger.debug("stage %s done in %.3fs", stage, elapsed)
        if self.observer is not None:
            self.observer(stage, elapsed)


def _run(
    image: ImageLike,
    engine: InferenceEngine,
    options: RemovalOptions,
    input_size: Tuple[int, int],
    clock: _StageClock,
):
    orig_w, orig_h = image_size(image)
    logger.info("Removing background: %dx%d options=%s", orig_w, orig_h, options)

    # Preprocess
    x = preprocess(image, input_size[0], input_size[1])
    clock.lap("preprocess")

    # Inference
    logits = predict_logits(engine, x)
    clock.lap("inference")

    # Mask reconstruction
    mask = reconstruct_mask(logits, orig_w, orig_h)
    clock.lap("postprocess")

    # Composite
    rgba = apply_mask(image, mask, options)
    clock.lap("composite")

    if options.sticker_outline:
        rgba = clean_border(rgba)
        clock.lap("outline")

    return RemovalResult(image=rgba, mask=mask), logits


def remove_background(
    image: ImageLike,
    engine: InferenceEngine,
    options: Optional[RemovalOptions] = None,
    *,
    input_size: Tuple[int, int] = (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE),
    observer: Optional[StageObserver] = None,
) -> RemovalResult:
    """
    Deterministic, linear pipeline:
      1) Preprocess (RGB, Lanczos resize, ImageNet normalization)
      2) Inference (external engine -> logits)
      3) Mask reconstruction (sigmoid, quantize, resize to original)
      4) Alpha composite (binary / smooth threshold)
      5) Optional sticker outline

    `observer(stage, seconds)` is called after each stage. Any failure raises and no
    result is produced.
    """
    options = options or RemovalOptions()
    result, _ = _run(image, engine, options, input_size, _StageClock(observer))
    return result


def process_image(
    image_path: str,
    out_path: str,
    engine: InferenceEngine,
    options: Optional[RemovalOptions] = None,
    *,
    write_mask: bool = False,
    write_heatmap: bool = False,
    quality: int = JPEG_QUALITY,
    input_size: Tuple[int, int] = (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE),
    observer: Optional[StageObserver] = None,
) -> StageTimings:
    """
    File-level wrapper: load -> remove_background -> save result (+ mask / heatmap).

    Outputs are only written after every stage succeeded.
    """
    options = options or RemovalOptions()
    t0 = time.perf_counter()

    image = load_image(image_path)
    clock = _StageClock(observer)
    result, logits = _run(image, engine, options, input_size, clock)

    heatmap = None
    if write_heatmap:
        w, h = result.size
        heatmap = render_heatmap(logits, w, h)

    save_image(result.image, out_path, quality=quality)
    if write_mask:
        save_mask(result.mask, mask_path_for(out_path))
    if heatmap is not None:
        # Heatmap is RGB; saved through the RGBA encoder with an opaque channel.
        heat_path = mask_path_for(out_path, suffix="_heatmap")
        save_image(to_rgba(heatmap), heat_path, quality=quality)
    logger.info("Saved %s", os.path.abspath(out_path))

    d = clock.durations
    return StageTimings(
        preprocess_s=d.get("preprocess", 0.0),
        inference_s=d.get("inference", 0.0),
        postprocess_s=d.get("postprocess", 0.0),
        composite_s=d.get("composite", 0.0),
        outline_s=d.get("outline", 0.0),
        total_s=time.perf_counter() - t0,
    )
