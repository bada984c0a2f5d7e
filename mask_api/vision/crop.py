import math
from typing import Optional

import numpy as np

from mask_api.vision.vision_types import BboxRequest, CropRect

DEFAULT_PADDING_RATIO = 0.1


def resolve_padding(padding_ratio: Optional[float]) -> float:
    # Missing or zero padding falls back to the default ratio.
    return float(padding_ratio) if padding_ratio else DEFAULT_PADDING_RATIO


def compute_crop_rect(
    bbox: BboxRequest,
    padding_ratio: float,
    image_width: int,
    image_height: int,
) -> CropRect:
    """
    Grow the bbox by padding_ratio of its own size on each side and clamp to the image.

    left/top are clamped at 0 and width/height at the right/bottom image edge.
    Degenerate boxes (x2 <= x1, or a bbox starting past the image) yield a
    zero-sized rect instead of a negative one; callers check `is_empty`.
    """
    box_w = bbox.x2 - bbox.x1
    box_h = bbox.y2 - bbox.y1

    pad_x = math.floor(box_w * padding_ratio)
    pad_y = math.floor(box_h * padding_ratio)

    left = max(0, math.floor(bbox.x1 - pad_x))
    top = max(0, math.floor(bbox.y1 - pad_y))
    width = min(image_width - left, math.floor(box_w + pad_x * 2))
    height = min(image_height - top, math.floor(box_h + pad_y * 2))

    return CropRect(left=left, top=top, width=max(0, width), height=max(0, height))


def crop_image(pixels: np.ndarray, rect: CropRect) -> np.ndarray:
    if rect.is_empty:
        raise ValueError("Empty crop region")
    img_h, img_w = pixels.shape[:2]
    if rect.left + rect.width > img_w or rect.top + rect.height > img_h:
        raise ValueError(
            f"Crop region {rect.as_tuple()} exceeds image bounds {img_w}x{img_h}."
        )
    return pixels[rect.top:rect.top + rect.height, rect.left:rect.left + rect.width].copy()
