import math
from dataclasses import replace
from typing import Optional, Tuple

import numpy as np

from mask_api.vision.vision_types import (
    ClassificationResult,
    DecodedImage,
    RegionCounts,
    SamplingConfig,
)

DEFAULT_CONFIG = SamplingConfig()


def with_threshold(config: SamplingConfig, threshold: Optional[float]) -> SamplingConfig:
    # A missing or zero threshold keeps the configured default.
    if not threshold:
        return config
    return replace(config, white_threshold=float(threshold))


def region_sizes(width: int, height: int, config: SamplingConfig = DEFAULT_CONFIG) -> Tuple[int, int, int]:
    """
    Return (border_size, corner_w, corner_h) for an image of the given size.

    The border band is measured against the shorter side, while each corner
    rectangle scales independently with width and height. All three are at
    least one pixel so tiny images still have non-empty regions.
    """
    border_size = max(1, math.floor(min(width, height) * config.border_fraction))
    corner_w = max(1, math.floor(width * config.corner_fraction))
    corner_h = max(1, math.floor(height * config.corner_fraction))
    return border_size, corner_w, corner_h


def _white_mask(sampled: np.ndarray, config: SamplingConfig) -> np.ndarray:
    # Opacity gate first: translucent pixels are never white whatever their RGB.
    threshold = float(config.white_threshold)
    r = sampled[..., 0]
    g = sampled[..., 1]
    b = sampled[..., 2]
    a = sampled[..., 3]
    return (
        (a > config.alpha_opacity_floor)
        & (r >= threshold)
        & (g >= threshold)
        & (b >= threshold)
    )


def sample_regions(
    image: DecodedImage,
    config: SamplingConfig = DEFAULT_CONFIG,
) -> Tuple[RegionCounts, RegionCounts]:
    """
    Walk the image at a fixed stride and count white pixels per region.

    Sampled coordinates are (x, y) with x in range(0, width, step) and y in
    range(0, height, step). Border and corner membership are independent, so a
    sample may land in both, one or neither region.

    Returns (border, corner) counts.
    """
    w, h = image.width, image.height
    step = max(1, int(config.step))
    border_size, corner_w, corner_h = region_sizes(w, h, config)

    # Strided view visits exactly the same coordinates as the nested y/x loop.
    sampled = image.pixels[0:h:step, 0:w:step]
    ys = np.arange(0, h, step)
    xs = np.arange(0, w, step)

    white = _white_mask(sampled, config)

    border_rows = (ys < border_size) | (ys >= h - border_size)
    border_cols = (xs < border_size) | (xs >= w - border_size)
    border = border_rows[:, None] | border_cols[None, :]

    # Union of the four corner rectangles == (top | bottom) x (left | right).
    corner_rows = (ys < corner_h) | (ys >= h - corner_h)
    corner_cols = (xs < corner_w) | (xs >= w - corner_w)
    corner = corner_rows[:, None] & corner_cols[None, :]

    border_counts = RegionCounts(
        white=int(np.count_nonzero(white & border)),
        total=int(np.count_nonzero(border)),
    )
    corner_counts = RegionCounts(
        white=int(np.count_nonzero(white & corner)),
        total=int(np.count_nonzero(corner)),
    )
    return border_counts, corner_counts


def classify_regions(
    border: RegionCounts,
    corner: RegionCounts,
    config: SamplingConfig = DEFAULT_CONFIG,
) -> ClassificationResult:
    # Either region alone is enough to call the background white.
    border_ratio = border.ratio
    corner_ratio = corner.ratio
    is_white = corner_ratio > config.corner_ratio_cutoff or border_ratio > config.border_ratio_cutoff
    return ClassificationResult(
        is_white_background=is_white,
        corner_ratio=corner_ratio,
        border_ratio=border_ratio,
    )


def classify_background(
    image: DecodedImage,
    config: SamplingConfig = DEFAULT_CONFIG,
) -> ClassificationResult:
    border, corner = sample_regions(image, config)
    return classify_regions(border, corner, config)
