from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
from PIL import Image


def _fake_engine(x):
    h, w = x.shape[-2:]
    y = np.full((1, 1, h, w), -10.0, dtype=np.float32)
    y[..., : w // 2] = 10.0
    return y


def _write_dummy_image(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (32, 24), (200, 100, 50)).save(str(path), format="PNG")


def test_run_directory(monkeypatch, tmp_path: Path):
    import run as run_mod

    _write_dummy_image(tmp_path / "in" / "a.png")
    _write_dummy_image(tmp_path / "in" / "sub" / "b.jpg")
    (tmp_path / "in" / "notes.txt").write_text("skip me", encoding="utf-8")

    monkeypatch.setattr(run_mod, "load_engine", lambda _path: _fake_engine)
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "run.py",
            "--input",
            str(tmp_path / "in"),
            "--output",
            str(tmp_path / "out"),
            "--threshold",
            "128",
            "--binary",
            "--sticker-outline",
            "--save-mask",
        ],
    )

    assert run_mod.main() == 0
    a = np.array(Image.open(str(tmp_path / "out" / "a.png")))
    assert a.shape == (24, 32, 4)
    assert int(a[0, 0, 3]) == 255
    assert (tmp_path / "out" / "a_mask.png").exists()
    assert (tmp_path / "out" / "sub" / "b.png").exists()
    assert not (tmp_path / "out" / "notes.png").exists()


def test_run_single_file(monkeypatch, tmp_path: Path):
    import run as run_mod

    src = tmp_path / "one.png"
    _write_dummy_image(src)
    dst = tmp_path / "result.webp"

    monkeypatch.setattr(run_mod, "load_engine", lambda _path: _fake_engine)
    monkeypatch.setattr(sys, "argv", ["run.py", "--input", str(src), "--output", str(dst), "--save-heatmap"])

    assert run_mod.main() == 0
    assert dst.exists()
    assert (tmp_path / "result_heatmap.webp").exists()


def test_download_model_streams_and_skips(monkeypatch, tmp_path: Path):
    import get_model as get_model_mod

    calls = {"n": 0}

    class _FakeResp:
        headers = {"content-length": "6"}

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def raise_for_status(self) -> None:
            return None

        def iter_content(self, chunk_size=1):
            yield b"abc"
            yield b""
            yield b"def"

    def _get(url, stream=False, timeout=None):
        calls["n"] += 1
        assert url.endswith("/silueta.onnx")
        assert stream is True
        return _FakeResp()

    monkeypatch.setattr(get_model_mod.requests, "get", _get)

    out = get_model_mod.download_model("silueta", tmp_path / "models")
    assert out.read_bytes() == b"abcdef"
    assert not (tmp_path / "models" / "silueta.onnx.part").exists()

    get_model_mod.download_model("silueta", tmp_path / "models")
    assert calls["n"] == 1


def test_model_url_rejects_unknown():
    import pytest

    import get_model as get_model_mod

    with pytest.raises(ValueError):
        get_model_mod.model_url("u3net")
