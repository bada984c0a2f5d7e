import numpy as np
import pytest

from mask_api.vision.background import (
    DEFAULT_CONFIG,
    classify_background,
    classify_regions,
    region_sizes,
    sample_regions,
    with_threshold,
)
from mask_api.vision.vision_types import DecodedImage, RegionCounts, SamplingConfig

from conftest import solid_rgba


def _image(pixels):
    h, w = pixels.shape[:2]
    return DecodedImage(width=w, height=h, pixels=pixels)


def _reference_counts(image, config):
    # Straight nested-loop walk over the raw RGBA buffer.
    w, h = image.width, image.height
    raw = image.pixels.reshape(-1)
    stride = image.stride
    border_size, corner_w, corner_h = region_sizes(w, h, config)
    t = config.white_threshold
    bw = bt = cw = ct = 0
    for y in range(0, h, config.step):
        for x in range(0, w, config.step):
            i = y * stride + x * 4
            r, g, b, a = (int(v) for v in raw[i:i + 4])
            is_white = a > config.alpha_opacity_floor and r >= t and g >= t and b >= t
            if y < border_size or y >= h - border_size or x < border_size or x >= w - border_size:
                bt += 1
                bw += is_white
            if (
                (x < corner_w and y < corner_h)
                or (x >= w - corner_w and y < corner_h)
                or (x < corner_w and y >= h - corner_h)
                or (x >= w - corner_w and y >= h - corner_h)
            ):
                ct += 1
                cw += is_white
    return RegionCounts(bw, bt), RegionCounts(cw, ct)


class TestRegionCounts:
    def test_zero_total_ratio_is_zero(self):
        assert RegionCounts(0, 0).ratio == 0.0

    def test_ratio(self):
        assert RegionCounts(3, 4).ratio == 0.75


class TestRegionSizes:
    def test_hundred_square(self):
        assert region_sizes(100, 100) == (10, 15, 15)

    def test_minimum_one_pixel(self):
        assert region_sizes(3, 5) == (1, 1, 1)

    def test_border_uses_shorter_side(self):
        border, cw, ch = region_sizes(400, 50)
        assert border == 5
        assert (cw, ch) == (60, 7)


class TestClassifyBackground:
    def test_all_white(self):
        result = classify_background(_image(solid_rgba(100, 100, (255, 255, 255, 255))))
        assert result.is_white_background is True
        assert result.to_dict() == {"isWhiteBg": True, "cornerRatio": 1.0, "borderRatio": 1.0}

    def test_all_black(self):
        result = classify_background(_image(solid_rgba(100, 100, (0, 0, 0, 255))))
        assert result.to_dict() == {"isWhiteBg": False, "cornerRatio": 0.0, "borderRatio": 0.0}

    @pytest.mark.parametrize("rgb", [(255, 255, 255), (0, 0, 0), (240, 250, 245)])
    def test_transparent_is_never_white(self, rgb):
        result = classify_background(_image(solid_rgba(64, 48, (*rgb, 0))))
        assert result.corner_ratio == 0.0
        assert result.border_ratio == 0.0
        assert result.is_white_background is False

    def test_alpha_floor_is_exclusive(self):
        at_floor = classify_background(_image(solid_rgba(20, 20, (255, 255, 255, 200))))
        above = classify_background(_image(solid_rgba(20, 20, (255, 255, 255, 201))))
        assert at_floor.border_ratio == 0.0
        assert above.border_ratio == 1.0

    def test_threshold_is_inclusive(self):
        img = _image(solid_rgba(20, 20, (230, 230, 230, 255)))
        assert classify_background(img).is_white_background is True
        assert classify_background(img, with_threshold(DEFAULT_CONFIG, 231)).is_white_background is False

    def test_single_channel_below_threshold(self):
        result = classify_background(_image(solid_rgba(20, 20, (255, 255, 229, 255))))
        assert result.border_ratio == 0.0

    def test_white_corners_only_is_white(self):
        pixels = solid_rgba(100, 100, (0, 0, 0, 255))
        for ys in (slice(0, 15), slice(85, 100)):
            for xs in (slice(0, 15), slice(85, 100)):
                pixels[ys, xs] = (255, 255, 255, 255)

        border, corner = sample_regions(_image(pixels))
        assert corner.white == corner.total
        assert (border.white, border.total) == (200, 900)

        result = classify_background(_image(pixels))
        assert result.corner_ratio > 0.6
        assert result.border_ratio <= 0.5
        assert result.is_white_background is True

    def test_white_border_ring_only_is_white(self):
        pixels = solid_rgba(100, 100, (255, 255, 255, 255))
        pixels[10:90, 10:90] = (0, 0, 0, 255)
        result = classify_background(_image(pixels))
        assert result.border_ratio == 1.0
        assert result.is_white_background is True

    def test_neither_region_white(self):
        pixels = solid_rgba(100, 100, (0, 0, 0, 255))
        pixels[0:2, :] = (255, 255, 255, 255)
        result = classify_background(_image(pixels))
        assert result.border_ratio < 0.5
        assert result.corner_ratio < 0.6
        assert result.is_white_background is False

    def test_monotonic_in_threshold(self):
        rng = np.random.default_rng(7)
        pixels = rng.integers(180, 256, size=(61, 83, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        img = _image(pixels)
        prev = None
        for threshold in (1, 190, 210, 230, 240, 250, 255):
            result = classify_background(img, with_threshold(DEFAULT_CONFIG, threshold))
            if prev is not None:
                assert result.border_ratio <= prev.border_ratio
                assert result.corner_ratio <= prev.corner_ratio
            prev = result

    def test_single_white_corner_pixel_rounds_half_up(self):
        pixels = solid_rgba(32, 32, (0, 0, 0, 255))
        pixels[0, 0] = (255, 255, 255, 255)
        border, corner = sample_regions(_image(pixels))
        assert (corner.white, corner.total) == (1, 16)
        assert classify_background(_image(pixels)).to_dict() == {
            "isWhiteBg": False,
            "cornerRatio": 0.063,
            "borderRatio": 0.011,
        }

    def test_ties_round_up(self):
        result = classify_regions(RegionCounts(5, 16), RegionCounts(1, 16))
        assert result.to_dict()["borderRatio"] == 0.313
        assert result.to_dict()["cornerRatio"] == 0.063

    def test_full_precision_before_rounding(self):
        # 0.6004 rounds to 0.6 but is still above the corner cutoff.
        result = classify_regions(RegionCounts(0, 10), RegionCounts(6004, 10000))
        assert result.is_white_background is True
        assert result.to_dict()["cornerRatio"] == 0.6


class TestSampleRegions:
    @pytest.mark.parametrize("size", [(1, 1), (2, 3), (37, 23), (100, 100), (101, 57)])
    def test_matches_nested_loop(self, size):
        w, h = size
        rng = np.random.default_rng(w * 1000 + h)
        pixels = rng.integers(0, 256, size=(h, w, 4), dtype=np.uint8)
        pixels[..., :3] |= 0xC0  # bias toward white so both outcomes occur
        img = _image(pixels)
        assert sample_regions(img) == _reference_counts(img, DEFAULT_CONFIG)

    def test_counts_never_exceed_total(self):
        rng = np.random.default_rng(3)
        img = _image(rng.integers(0, 256, size=(40, 70, 4), dtype=np.uint8))
        for counts in sample_regions(img):
            assert 0 <= counts.white <= counts.total

    def test_single_pixel_image(self):
        border, corner = sample_regions(_image(solid_rgba(1, 1, (255, 255, 255, 255))))
        assert border == RegionCounts(1, 1)
        assert corner == RegionCounts(1, 1)

    def test_input_not_mutated(self):
        pixels = solid_rgba(30, 30, (250, 250, 250, 255))
        before = pixels.copy()
        sample_regions(_image(pixels))
        assert np.array_equal(pixels, before)

    def test_custom_step(self):
        img = _image(solid_rgba(10, 10, (255, 255, 255, 255)))
        border, _ = sample_regions(img, SamplingConfig(step=1))
        # border_size 1 -> outer ring of a 10x10 image
        assert border.total == 36


class TestWithThreshold:
    @pytest.mark.parametrize("value", [None, 0])
    def test_falsy_keeps_default(self, value):
        assert with_threshold(DEFAULT_CONFIG, value).white_threshold == 230

    def test_override(self):
        assert with_threshold(DEFAULT_CONFIG, 250).white_threshold == 250

    def test_fractional_threshold(self):
        config = with_threshold(DEFAULT_CONFIG, 230.5)
        assert config.white_threshold == 230.5
        img = _image(solid_rgba(20, 20, (230, 230, 230, 255)))
        assert classify_background(img, config).border_ratio == 0.0
        img = _image(solid_rgba(20, 20, (231, 231, 231, 255)))
        assert classify_background(img, config).border_ratio == 1.0


class TestDecodedImage:
    def test_from_buffer(self):
        buf = bytes([255, 255, 255, 255] * 6)
        img = DecodedImage.from_buffer(3, 2, buf)
        assert img.pixels.shape == (2, 3, 4)
        assert img.stride == 12
        assert classify_background(img).border_ratio == 1.0

    def test_from_buffer_too_short(self):
        with pytest.raises(ValueError):
            DecodedImage.from_buffer(3, 2, bytes(10))

    def test_from_buffer_bad_size(self):
        with pytest.raises(ValueError):
            DecodedImage.from_buffer(0, 2, bytes(10))
