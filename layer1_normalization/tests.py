"""
Tests for Layer 1 — normalization and MRZ region location.
"""
import numpy as np
import pytest

from conftest import render_mrz
from error_handlers import InvalidRegionError
from layer1_normalization import (
    ImageNormalizer,
    MRZRegionLocator,
    Region,
    crop,
    exposure_for,
    mean_luminance,
    threshold_for
)


class TestExposureParameters:
    """Test exposure and threshold derivation."""

    def test_mid_luminance_uses_base_exposure(self):
        """Test scenes between the limits keep the base exposure."""
        assert exposure_for(0.5) == 0.5
        assert exposure_for(0.35) == 0.5
        assert exposure_for(0.8) == 0.5

    def test_overexposed_scene_reduces_exposure(self):
        """Test bright scenes get (L - 0.5) * 2 taken off."""
        assert exposure_for(0.9) == pytest.approx(0.5 - 0.8)

    def test_underexposed_scene_boosts_exposure(self):
        """Test dark scenes get 2 ** (0.5 - L) added."""
        assert exposure_for(0.2) == pytest.approx(0.5 + 2 ** 0.3)

    def test_threshold_formula(self):
        """Test threshold is 1 - (1 - L) ** 0.2."""
        assert threshold_for(0.0) == 0.0
        assert threshold_for(1.0) == 1.0
        assert threshold_for(0.5) == pytest.approx(1 - 0.5 ** 0.2)

    @pytest.mark.parametrize("luminance", [0.0, 0.1, 0.35, 0.5, 0.81, 1.0])
    def test_parameters_depend_only_on_luminance(self, luminance):
        """Test same luminance gives identical parameters."""
        assert exposure_for(luminance) == exposure_for(luminance)
        assert threshold_for(luminance) == threshold_for(luminance)

    def test_same_luminance_different_images(self):
        """Test two images with equal mean luminance get equal parameters."""
        normalizer = ImageNormalizer()
        flat = np.full((10, 10), 100, dtype=np.uint8)
        striped = np.zeros((10, 10), dtype=np.uint8)
        striped[:, ::2] = 200

        a, b = normalizer.parameters(flat), normalizer.parameters(striped)
        assert a.luminance == pytest.approx(b.luminance)
        assert a.exposure == pytest.approx(b.exposure)
        assert a.threshold == pytest.approx(b.threshold)


class TestMeanLuminance:
    """Test luminance measurement."""

    def test_gray_image(self):
        """Test grayscale mean is scaled to [0, 1]."""
        image = np.full((4, 4), 51, dtype=np.uint8)
        assert mean_luminance(image) == pytest.approx(0.2)

    def test_white_and_black(self):
        """Test extremes."""
        assert mean_luminance(np.full((4, 4, 3), 255, dtype=np.uint8)) == pytest.approx(1.0)
        assert mean_luminance(np.zeros((4, 4, 3), dtype=np.uint8)) == 0.0

    def test_green_weighs_most(self):
        """Test Rec. 709 weighting in BGR order."""
        green = np.zeros((4, 4, 3), dtype=np.uint8)
        green[..., 1] = 255
        blue = np.zeros((4, 4, 3), dtype=np.uint8)
        blue[..., 0] = 255

        assert mean_luminance(green) == pytest.approx(0.7152, abs=1e-4)
        assert mean_luminance(blue) == pytest.approx(0.0722, abs=1e-4)


class TestImageNormalizer:
    """Test the normalization pipeline."""

    def test_output_is_double_resolution(self):
        """Test 2x upscale."""
        image = np.full((30, 120, 3), 128, dtype=np.uint8)
        result = ImageNormalizer().normalize(image)
        assert result.shape == (60, 240)

    def test_output_is_binary(self):
        """Test output contains only black and white."""
        rng = np.random.default_rng(7)
        image = rng.integers(0, 256, size=(20, 40, 3), dtype=np.uint8)
        result = ImageNormalizer().normalize(image)
        assert result.dtype == np.uint8
        assert set(np.unique(result)).issubset({0, 255})

    def test_dark_text_on_light_background(self):
        """Test text stays black and paper turns white."""
        image = np.full((40, 100, 3), 230, dtype=np.uint8)
        image[15:25, 40:60] = 10

        result = ImageNormalizer().normalize(image)

        assert result[40, 100] == 0      # centre of the dark block
        assert result[5, 5] == 255       # paper
        assert result[70, 190] == 255

    def test_deterministic(self):
        """Test same input gives the same output."""
        rng = np.random.default_rng(3)
        image = rng.integers(0, 256, size=(16, 16, 3), dtype=np.uint8)
        normalizer = ImageNormalizer()
        np.testing.assert_array_equal(normalizer.normalize(image), normalizer.normalize(image))

    def test_zero_area_region_raises(self):
        """Test degenerate regions are rejected."""
        normalizer = ImageNormalizer()
        with pytest.raises(InvalidRegionError):
            normalizer.normalize(np.zeros((0, 10, 3), dtype=np.uint8))
        with pytest.raises(InvalidRegionError):
            normalizer.normalize(None)

    def test_invalid_region_error_payload(self):
        """Test error code for API responses."""
        with pytest.raises(InvalidRegionError) as excinfo:
            ImageNormalizer().normalize(np.zeros((5, 0), dtype=np.uint8))
        assert excinfo.value.to_dict()['error_code'] == 'INVALID_REGION'


class TestRegion:
    """Test cutout geometry."""

    def test_bottom_band(self):
        """Test the MRZ band is the bottom part of the cutout."""
        band = Region(10, 100, 400, 200).bottom_band(0.4)
        assert band == Region(10, 220, 400, 80)

    def test_enlarged_by_height_margin(self):
        """Test 5% of the height is added on each side."""
        assert Region(100, 100, 400, 200).enlarged(0.05) == Region(90, 90, 420, 220)

    def test_union(self):
        """Test union covers both rectangles."""
        assert Region(0, 0, 10, 10).union(Region(5, 20, 10, 5)) == Region(0, 0, 15, 25)

    def test_crop_is_clipped_to_image(self):
        """Test crops outside the image are clipped."""
        image = np.zeros((50, 80, 3), dtype=np.uint8)
        assert crop(image, Region(-10, 40, 200, 100)).shape == (10, 80, 3)

    def test_crop_outside_image_raises(self):
        """Test crops with no overlap are degenerate."""
        image = np.zeros((50, 80, 3), dtype=np.uint8)
        with pytest.raises(InvalidRegionError):
            crop(image, Region(100, 100, 10, 10))


class TestMRZRegionLocator:
    """Test MRZ block location."""

    def test_blank_image_has_no_mrz(self):
        """Test a plain page yields nothing."""
        image = np.full((200, 600, 3), 255, dtype=np.uint8)
        assert MRZRegionLocator().locate(image) is None

    def test_locates_wide_text_rows(self, sample_mrz_td3):
        """Test two full-width text rows are found near the bottom."""
        image = render_mrz(sample_mrz_td3, band_height=200, top_padding=0)
        region = MRZRegionLocator().locate(image)

        assert region is not None
        assert region.width > image.shape[1] * 0.8
        assert region.height <= image.shape[0] * 0.5

    def test_short_text_is_ignored(self):
        """Test text narrower than the MRZ width is not an MRZ."""
        image = render_mrz(["P<UTO<<<"], band_height=200, top_padding=0)
        wide = np.full((image.shape[0], image.shape[1] * 4, 3), 255, dtype=np.uint8)
        wide[:, :image.shape[1]] = image
        assert MRZRegionLocator().locate(wide) is None

    def test_degenerate_image_raises(self):
        """Test empty input is rejected."""
        with pytest.raises(InvalidRegionError):
            MRZRegionLocator().locate(np.zeros((0, 0, 3), dtype=np.uint8))
