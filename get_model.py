from __future__ import annotations

import argparse
import logging
from pathlib import Path

import requests
from tqdm import tqdm

from sticker_rembg.config import MODEL_BASE_URL, MODEL_NAMES

logger = logging.getLogger("sticker_rembg.get_model")


def model_url(name: str, base_url: str = MODEL_BASE_URL) -> str:
    if name not in MODEL_NAMES:
        raise ValueError(f"Unknown model {name!r}; expected one of {', '.join(MODEL_NAMES)}")
    return f"{base_url.rstrip('/')}/{name}.onnx"


def download_model(name: str, out_dir: Path, *, base_url: str = MODEL_BASE_URL, timeout_s: float = 60.0) -> Path:
    """
    Download `<name>.onnx` into out_dir (skipped when the file already exists).

    The file is streamed to `<name>.onnx.part` and renamed once complete.
    """
    out_path = out_dir / f"{name}.onnx"
    if out_path.exists():
        logger.info("%s already exists", out_path)
        return out_path

    url = model_url(name, base_url=base_url)
    out_dir.mkdir(parents=True, exist_ok=True)
    tmp_path = out_dir / f"{name}.onnx.part"

    with requests.get(url, stream=True, timeout=timeout_s) as resp:
        resp.raise_for_status()
        total = int(resp.headers.get("content-length", 0)) or None
        with open(tmp_path, "wb") as fp, tqdm(total=total, unit="B", unit_scale=True, desc=out_path.name) as bar:
            for chunk in resp.iter_content(chunk_size=1 << 20):
                if chunk:
                    fp.write(chunk)
                    bar.update(len(chunk))

    tmp_path.replace(out_path)
    logger.info("Downloaded %s", out_path)
    return out_path


def main() -> int:
    parser = argparse.ArgumentParser(description="Download ONNX background-removal models.")
    parser.add_argument(
        "--model",
        action="append",
        choices=list(MODEL_NAMES),
        help="Model to fetch (repeatable). Default: all.",
    )
    parser.add_argument(
        "--out-dir",
        default=str(Path(__file__).parent / "models"),
        help="Destination directory.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    out_dir = Path(args.out_dir)
    for name in args.model or MODEL_NAMES:
        download_model(name, out_dir)
    logger.info("All models downloaded to: %s", out_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
