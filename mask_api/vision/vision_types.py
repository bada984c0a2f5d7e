from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Tuple

import numpy as np

U8 = np.uint8
RGBA_CHANNELS = 4


@dataclass(frozen=True, slots=True)
class SamplingConfig:
    """Tunable parameters for white-background detection."""
    # Per-channel RGB floor for a pixel to count as white
    white_threshold: float = 230
    # Sampling stride in both axes (every 2nd pixel of every 2nd row)
    step: int = 2

    # Region geometry, as fractions of the image size
    border_fraction: float = 0.1
    corner_fraction: float = 0.15

    # Decision policy (strictly greater than)
    corner_ratio_cutoff: float = 0.6
    border_ratio_cutoff: float = 0.5

    # Pixels with alpha <= this are never white
    alpha_opacity_floor: int = 200


@dataclass(frozen=True, slots=True)
class DecodedImage:
    width: int
    height: int
    pixels: np.ndarray  # (H, W, 4) uint8, RGBA

    @property
    def stride(self) -> int:
        return self.width * RGBA_CHANNELS

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer) -> "DecodedImage":
        # Row-major RGBA bytes; trailing bytes beyond width*height*4 are ignored.
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size must be positive, got {width}x{height}.")
        needed = width * height * RGBA_CHANNELS
        flat = np.frombuffer(bytes(buffer), dtype=U8)
        if flat.size < needed:
            raise ValueError(f"Pixel buffer too short: expected {needed} bytes, got {flat.size}.")
        pixels = flat[:needed].reshape(height, width, RGBA_CHANNELS)
        return cls(width=width, height=height, pixels=pixels)


@dataclass(slots=True)
class RegionCounts:
    white: int = 0
    total: int = 0

    @property
    def ratio(self) -> float:
        return self.white / self.total if self.total > 0 else 0.0


def round_ratio(value: float, places: str = "0.001") -> float:
    # Ties round up on the exact binary value (0.0625 -> 0.063).
    return float(Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    is_white_background: bool
    corner_ratio: float
    border_ratio: float

    def to_dict(self) -> dict:
        # Ratios keep full precision internally; rounding is presentation only.
        return {
            "isWhiteBg": bool(self.is_white_background),
            "cornerRatio": round_ratio(self.corner_ratio),
            "borderRatio": round_ratio(self.border_ratio),
        }


@dataclass(frozen=True, slots=True)
class BboxRequest:
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_sequence(cls, bbox) -> "BboxRequest":
        x1, y1, x2, y2 = (float(v) for v in bbox)
        return cls(x1, y1, x2, y2)


@dataclass(frozen=True, slots=True)
class CropRect:
    left: int
    top: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.width, self.height)


__all__ = [
    "BboxRequest",
    "ClassificationResult",
    "CropRect",
    "DecodedImage",
    "RGBA_CHANNELS",
    "RegionCounts",
    "SamplingConfig",
    "U8",
    "round_ratio",
]
