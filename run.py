from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from sticker_rembg.config import DEFAULT_MODEL_PATH, DEFAULT_THRESHOLD, JPEG_QUALITY
from sticker_rembg.contracts import RemovalOptions
from sticker_rembg.model import load_engine
from sticker_rembg.pipeline import process_image

logger = logging.getLogger("sticker_rembg.run")


def _iter_images(input_path: Path):
    exts = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}
    if input_path.is_file():
        yield input_path
        return
    for p in sorted(input_path.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def _output_for(img_path: Path, input_path: Path, output: Path, suffix: str) -> Path:
    if input_path.is_file():
        # Single file: --output is the destination file (or a directory to drop it in).
        if output.suffix:
            return output
        return output / f"{img_path.stem}{suffix}"
    rel = img_path.relative_to(input_path)
    return (output / rel).with_suffix(suffix)


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Background removal for art/sticker images (ONNX or TorchScript).")
    parser.add_argument("--input", required=True, type=str, help="Input image or directory containing images.")
    parser.add_argument("--output", required=True, type=str, help="Output image path or directory.")
    parser.add_argument("--model", default=DEFAULT_MODEL_PATH, type=str, help="Path to a .onnx or TorchScript model.")
    parser.add_argument(
        "--threshold",
        default=DEFAULT_THRESHOLD,
        type=int,
        help="Mask threshold 0-255. Higher values = more aggressive removal.",
    )
    parser.add_argument("--binary", action="store_true", help="Hard cutout, no semi-transparency.")
    parser.add_argument("--sticker-outline", action="store_true", help="Add a soft black outline around the cut-out.")
    parser.add_argument("--save-mask", action="store_true", help="Also write <name>_mask alongside each output.")
    parser.add_argument("--save-heatmap", action="store_true", help="Also write <name>_heatmap (diagnostic view).")
    parser.add_argument("--format", default="png", choices=["png", "webp", "jpg"], help="Output format for directories.")
    parser.add_argument("--quality", default=JPEG_QUALITY, type=int, help="JPEG quality (1-100).")
    parser.add_argument("--log-level", default="INFO", type=str, help="Logging level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input)
    output = Path(args.output)
    if not input_path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")
    if not 0 <= args.threshold <= 255:
        parser.error("--threshold must be in 0..255")

    options = RemovalOptions(
        threshold=args.threshold,
        binary=args.binary,
        sticker_outline=args.sticker_outline,
    )
    engine = load_engine(args.model)

    images = list(_iter_images(input_path))
    if not images:
        logger.warning("No images found under %s", input_path)
        return 0

    suffix = f".{args.format}"
    total0 = time.perf_counter()
    for img_path in tqdm(images, desc="Processing", unit="img"):
        out_path = _output_for(img_path, input_path, output, suffix)
        timings = process_image(
            str(img_path),
            str(out_path),
            engine,
            options,
            write_mask=args.save_mask,
            write_heatmap=args.save_heatmap,
            quality=args.quality,
        )
        logger.info(
            "%s: total=%.3fs (pre=%.3fs inf=%.3fs post=%.3fs comp=%.3fs outline=%.3fs)",
            img_path.name,
            timings.total_s,
            timings.preprocess_s,
            timings.inference_s,
            timings.postprocess_s,
            timings.composite_s,
            timings.outline_s,
        )

    total1 = time.perf_counter()
    logger.info("Done. %d images in %.2fs", len(images), total1 - total0)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
