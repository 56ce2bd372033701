"""
Centralized configuration constants for the background removal pipeline.

Ground rules:
- CPU + float32
- Batch size 1
- Fixed square model input (U^2-Net family)
"""

import os

# U^2-Net / Silueta export resolution.
MODEL_INPUT_SIZE = 320

IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]

# Alpha compositing (0..255 on the reconstructed mask).
DEFAULT_THRESHOLD = 160

# Sticker outline. A pixel with alpha >= STICKER_ALPHA_FLOOR is part of the sticker body.
STICKER_ALPHA_FLOOR = 16
OUTLINE_STROKE_PX = 6.0
OUTLINE_FEATHER_PX = 1.5
# Outline alpha values below this (0..255) are dropped to avoid stray half-transparent pixels.
OUTLINE_MIN_ALPHA = 3

# Diagnostic heatmap: >1.0 makes the ramp "harder", <1.0 softer.
HEATMAP_GAMMA = 1.2
HEATMAP_GAMMA_RANGE = (0.2, 5.0)
HEATMAP_STOPS = [
    (0.00, (0, 0, 0)),  # black
    (0.15, (0, 0, 64)),  # navy
    (0.30, (0, 0, 255)),  # blue
    (0.45, (128, 0, 192)),  # purple
    (0.60, (255, 0, 0)),  # red
    (0.75, (255, 128, 0)),  # orange
    (0.90, (255, 255, 0)),  # yellow
    (1.00, (255, 255, 255)),  # white
]

JPEG_QUALITY = 95

MODEL_BASE_URL = os.getenv("REMBG_MODEL_URL", "https://github.com/danielgatis/rembg/releases/download/v0.0.0")
MODEL_NAMES = ("u2net", "u2net_human_seg", "silueta")
DEFAULT_MODEL_PATH = os.getenv("REMBG_MODEL_PATH", os.path.join("models", "u2net.onnx"))
