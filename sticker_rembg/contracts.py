from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_THRESHOLD


class RemovalOptions(BaseModel):
    """
    Options for background removal.

    threshold (0..255), higher = more aggressive removal:
      - 76..102: soft edges with semi-transparency
      - 128: balanced
      - 153..179: stronger cutout, cleaner edges
    binary: hard cutout without semi-transparency.
    sticker_outline: draw a soft black outline outside the cut-out.
    """

    model_config = ConfigDict(frozen=True)

    threshold: int = Field(DEFAULT_THRESHOLD, ge=0, le=255)
    binary: bool = False
    sticker_outline: bool = False

    def with_threshold(self, threshold: int) -> "RemovalOptions":
        return RemovalOptions(threshold=threshold, binary=self.binary, sticker_outline=self.sticker_outline)

    def with_binary_mode(self, binary: bool) -> "RemovalOptions":
        return RemovalOptions(threshold=self.threshold, binary=binary, sticker_outline=self.sticker_outline)

    def with_sticker_outline(self, sticker_outline: bool) -> "RemovalOptions":
        return RemovalOptions(threshold=self.threshold, binary=self.binary, sticker_outline=sticker_outline)


@dataclass(frozen=True, eq=False)
class RemovalResult:
    """Final RGBA image (H,W,4) and the uint8 mask (H,W) used to produce it."""

    image: np.ndarray
    mask: np.ndarray

    def __post_init__(self) -> None:
        # Own the buffers: callers may keep these after the pipeline's arrays are reused.
        object.__setattr__(self, "image", np.array(self.image, dtype=np.uint8, copy=True))
        object.__setattr__(self, "mask", np.array(self.mask, dtype=np.uint8, copy=True))

    @property
    def size(self) -> tuple[int, int]:
        """(width, height)."""
        h, w = self.mask.shape[:2]
        return w, h

    def into_parts(self) -> tuple[np.ndarray, np.ndarray]:
        return self.image, self.mask
