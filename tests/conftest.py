import cv2
import numpy as np
import pytest


def solid_rgba(width, height, rgba):
    img = np.empty((height, width, 4), dtype=np.uint8)
    img[...] = rgba
    return img


def png_bytes(rgba_img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", cv2.cvtColor(rgba_img, cv2.COLOR_RGBA2BGRA))
    assert ok
    return buf.tobytes()


@pytest.fixture
def make_png():
    def _make(width, height, rgba):
        return png_bytes(solid_rgba(width, height, rgba))
    return _make
