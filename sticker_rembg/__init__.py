"""
Background removal core for cut-out "sticker" artwork.

preprocess -> (external inference engine) -> reconstruct_mask -> apply_mask -> clean_border
"""

from .border import clean_border
from .composite import apply_mask
from .contracts import RemovalOptions, RemovalResult
from .errors import (
    InferenceError,
    InvalidInputError,
    PreprocessingError,
    RembgError,
    ShapeError,
    UnsupportedFormatError,
)
from .pipeline import process_image, remove_background
from .postprocess import reconstruct_mask, render_heatmap
from .preprocess import preprocess

__all__ = [
    "InferenceError",
    "InvalidInputError",
    "PreprocessingError",
    "RembgError",
    "RemovalOptions",
    "RemovalResult",
    "ShapeError",
    "UnsupportedFormatError",
    "apply_mask",
    "clean_border",
    "preprocess",
    "process_image",
    "reconstruct_mask",
    "remove_background",
    "render_heatmap",
]
