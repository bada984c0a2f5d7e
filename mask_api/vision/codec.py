import cv2
import numpy as np

from mask_api.vision.vision_types import DecodedImage, U8

_TO_RGBA = {
    1: cv2.COLOR_GRAY2RGBA,
    3: cv2.COLOR_BGR2RGBA,
    4: cv2.COLOR_BGRA2RGBA,
}


def _to_u8(img: np.ndarray) -> np.ndarray:
    if img.dtype == np.uint8:
        return img
    if img.dtype == np.uint16:
        # 16-bit PNG/TIFF: keep the high byte.
        return (img >> 8).astype(U8)
    raise ValueError(f"Unsupported image depth: {img.dtype}")


def ensure_rgba_u8(img: np.ndarray) -> np.ndarray:
    # OpenCV hands back GRAY, BGR or BGRA; everything downstream assumes RGBA uint8.
    # Missing alpha is added as fully opaque.
    img = _to_u8(img)
    channels = 1 if img.ndim == 2 else img.shape[2]
    code = _TO_RGBA.get(channels)
    if code is None:
        raise ValueError(f"Unsupported channel count: {channels}")
    return cv2.cvtColor(img, code)


def decode_rgba(data: bytes) -> DecodedImage:
    if not data:
        raise ValueError("Invalid image")
    img = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Invalid image")
    rgba = np.ascontiguousarray(ensure_rgba_u8(img))
    height, width = rgba.shape[:2]
    return DecodedImage(width=int(width), height=int(height), pixels=rgba)


def encode_png(pixels_rgba: np.ndarray) -> bytes:
    bgra = cv2.cvtColor(pixels_rgba, cv2.COLOR_RGBA2BGRA)
    ok, png = cv2.imencode(".png", bgra)
    if not ok:
        raise RuntimeError("Failed to encode PNG")
    return png.tobytes()
