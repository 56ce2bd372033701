from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import torch
from PIL import Image

from sticker_rembg.contracts import RemovalOptions
from sticker_rembg.errors import InferenceError, ShapeError, UnsupportedFormatError
from sticker_rembg.pipeline import StageTimings, process_image, remove_background


class _FakeEngine:
    """Left half foreground (+10 logits), right half background (-10)."""

    def __init__(self, output_shape=(1, 1, 320, 320), wrap=None):
        self.output_shape = output_shape
        self.wrap = wrap
        self.calls = []

    def __call__(self, x: torch.Tensor):
        self.calls.append(x)
        h, w = self.output_shape[-2:]
        y = np.full(self.output_shape, -10.0, dtype=np.float32)
        y[..., : w // 2] = 10.0
        if self.wrap == "tuple":
            return (torch.from_numpy(y), torch.zeros(1))
        if self.wrap == "dict":
            return {"aux": "ignored", "logits": torch.from_numpy(y)}
        return y


def _rgb(h: int = 48, w: int = 64) -> np.ndarray:
    return np.random.default_rng(11).integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def test_remove_background_binary_halves():
    engine = _FakeEngine()
    result = remove_background(_rgb(), engine, RemovalOptions(threshold=128, binary=True))

    assert result.image.shape == (48, 64, 4)
    assert result.mask.shape == (48, 64)
    assert (result.image[:, 0, 3] == 255).all()
    assert (result.image[:, -1, 3] == 0).all()
    np.testing.assert_array_equal(result.image[..., :3], _rgb())


def test_engine_receives_normalized_tensor():
    engine = _FakeEngine()
    remove_background(_rgb(), engine)
    assert len(engine.calls) == 1
    x = engine.calls[0]
    assert tuple(x.shape) == (1, 3, 320, 320)
    assert x.dtype == torch.float32


def test_custom_input_size():
    engine = _FakeEngine(output_shape=(1, 1, 32, 64))
    result = remove_background(_rgb(), engine, input_size=(64, 32))
    assert tuple(engine.calls[0].shape) == (1, 3, 32, 64)
    assert result.mask.shape == (48, 64)


@pytest.mark.parametrize("wrap", ["tuple", "dict"])
def test_wrapped_engine_outputs(wrap):
    result = remove_background(_rgb(), _FakeEngine(wrap=wrap), RemovalOptions(threshold=128, binary=True))
    assert (result.image[:, 0, 3] == 255).all()
    assert (result.image[:, -1, 3] == 0).all()


@pytest.mark.parametrize("shape", [(320, 320), (3, 320, 320), (1, 2, 320, 320)])
def test_logit_ranks(shape):
    result = remove_background(_rgb(), _FakeEngine(output_shape=shape), RemovalOptions(threshold=128, binary=True))
    assert (result.image[:, 0, 3] == 255).all()


def test_flipped_engine_output():
    def engine(x):
        y = _FakeEngine()(x)
        return np.flip(y, axis=-1)

    result = remove_background(_rgb(), engine, RemovalOptions(threshold=128, binary=True))
    assert (result.image[:, 0, 3] == 0).all()
    assert (result.image[:, -1, 3] == 255).all()


def test_bad_logit_rank():
    def engine(_x):
        return np.zeros((320,), dtype=np.float32)

    with pytest.raises(ShapeError):
        remove_background(_rgb(), engine)


def test_engine_failure_is_inference_error():
    boom = RuntimeError("session exploded")

    def engine(_x):
        raise boom

    with pytest.raises(InferenceError) as exc_info:
        remove_background(_rgb(), engine)
    assert exc_info.value.__cause__ is boom


def test_observer_sees_stage_boundaries():
    seen = []
    remove_background(_rgb(), _FakeEngine(), observer=lambda stage, s: seen.append((stage, s)))
    assert [s for s, _ in seen] == ["preprocess", "inference", "postprocess", "composite"]
    assert all(t >= 0.0 for _, t in seen)

    seen.clear()
    remove_background(_rgb(), _FakeEngine(), RemovalOptions(sticker_outline=True), observer=lambda st, s: seen.append((st, s)))
    assert [s for s, _ in seen][-1] == "outline"


def test_sticker_outline_adds_pixels_outside_only():
    engine = _FakeEngine()
    plain = remove_background(_rgb(), engine, RemovalOptions(threshold=128, binary=True))
    outlined = remove_background(_rgb(), engine, RemovalOptions(threshold=128, binary=True, sticker_outline=True))

    inside = plain.image[..., 3] >= 16
    np.testing.assert_array_equal(outlined.image[inside], plain.image[inside])
    np.testing.assert_array_equal(outlined.mask, plain.mask)
    assert (outlined.image[..., 3] >= plain.image[..., 3]).all()
    assert (outlined.image[:, -1, 3] == 0).all()


def test_pil_input_supported():
    img = Image.fromarray(_rgb())
    result = remove_background(img, _FakeEngine())
    assert result.size == (64, 48)


def _write_png(path: Path, arr: np.ndarray) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(arr).save(str(path), format="PNG")


def test_process_image_writes_outputs(tmp_path: Path):
    src = tmp_path / "in" / "art.png"
    _write_png(src, _rgb())
    out = tmp_path / "out" / "art.png"

    timings = process_image(
        str(src),
        str(out),
        _FakeEngine(),
        RemovalOptions(threshold=128, binary=True),
        write_mask=True,
        write_heatmap=True,
    )

    assert isinstance(timings, StageTimings)
    assert timings.total_s >= timings.inference_s >= 0.0
    assert timings.outline_s == 0.0

    rgba = np.array(Image.open(str(out)))
    assert rgba.shape == (48, 64, 4)
    assert (rgba[:, 0, 3] == 255).all()

    mask = np.array(Image.open(str(tmp_path / "out" / "art_mask.png")))
    assert mask.shape == (48, 64, 4)
    heat = np.array(Image.open(str(tmp_path / "out" / "art_heatmap.png")))
    assert heat.shape == (48, 64, 4)
    assert tuple(heat[0, 0, :3]) == (255, 255, 255)
    assert tuple(heat[0, -1, :3]) == (0, 0, 0)


def test_process_image_failure_writes_nothing(tmp_path: Path):
    src = tmp_path / "art.png"
    _write_png(src, _rgb())

    def engine(_x):
        raise ValueError("bad input")

    out = tmp_path / "out" / "art.png"
    with pytest.raises(InferenceError):
        process_image(str(src), str(out), engine, write_mask=True)
    assert not out.exists()
    assert not (tmp_path / "out").exists()


def test_process_image_unsupported_format(tmp_path: Path):
    src = tmp_path / "art.png"
    _write_png(src, _rgb())
    with pytest.raises(UnsupportedFormatError):
        process_image(str(src), str(tmp_path / "art.gif"), _FakeEngine())
