"""
Error kinds raised by the background removal pipeline.

Each kind also derives from the built-in exception callers would have caught
before (ValueError for bad inputs, RuntimeError for engine failures).
"""


class RembgError(Exception):
    """Base class for every pipeline error."""


class InvalidInputError(RembgError, ValueError):
    """Malformed caller-supplied dimensions, images or paths."""


class ShapeError(RembgError, ValueError):
    """Tensor rank/shape outside the supported contract."""


class PreprocessingError(RembgError, ValueError):
    """Mask and image disagree before compositing."""


class UnsupportedFormatError(RembgError, ValueError):
    """Output file extension has no encoder."""


class InferenceError(RembgError, RuntimeError):
    """Opaque failure raised by the inference engine."""
