from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass(frozen=True)
class CropRect:
    x: int
    y: int
    width: int
    height: int

    def as_tuple(self) -> tuple[int, int, int, int]:
        """(left, top, width, height) in original image coordinates."""
        return self.x, self.y, self.width, self.height


@dataclass(frozen=True)
class ProcessOptions:
    """A validated transformation request."""

    input_path: str
    crop: CropRect | None = None
    width: int | None = None
    height: int | None = None
    format: str | None = None
    quality: int = 80
    output_path: str | None = None
    remove_bg: bool = False
    bg_color: str | None = None
    bg_tolerance: float | None = None

    @property
    def changes_geometry(self) -> bool:
        return self.crop is not None or self.width is not None or self.height is not None


@dataclass(frozen=True)
class PreparedPaths:
    source_ext: str
    target_ext: str
    resolved_out: str
    est_width: int = 0
    est_height: int = 0


@dataclass
class PixelBuffer:
    """Raw interleaved uint8 pixels shaped (height, width, channels)."""

    width: int
    height: int
    channels: int
    data: np.ndarray

    def __post_init__(self) -> None:
        expected = (self.height, self.width, self.channels)
        if self.data.shape != expected:
            raise ValueError(f"pixel data shape {self.data.shape} does not match {expected}")
        if self.data.dtype != np.uint8:
            raise ValueError(f"pixel data must be uint8, got {self.data.dtype}")


@dataclass(frozen=True)
class ProcessResult:
    output_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"outputPath": self.output_path}
