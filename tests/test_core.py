"""
Tests for vstab core: images, pyramids, gradients and configuration.
"""

import json

import pytest
import numpy as np


class TestGrayscaleImage:
    """Tests for GrayscaleImage."""

    def test_import(self):
        """Test that GrayscaleImage can be imported at package level."""
        import vstab
        assert vstab.GrayscaleImage is not None
        assert hasattr(vstab, 'stabilize')

    def test_get_set(self):
        """Test pixel round trip through set/get."""
        from vstab.core.image import GrayscaleImage

        img = GrayscaleImage.new(4, 4)
        img.set(2, 3, 0.75)
        assert img.get(2, 3) == pytest.approx(0.75)
        assert img.data[3 * 4 + 2] == pytest.approx(0.75)

    def test_clamped_access(self):
        """Test out-of-range reads replicate the nearest edge pixel."""
        from vstab.core.image import GrayscaleImage

        img = GrayscaleImage.from_array(np.arange(12, dtype=np.float32).reshape(3, 4) / 12)
        assert img.get(-1, -1) == img.get(0, 0)
        assert img.get(img.width, img.height) == img.get(img.width - 1, img.height - 1)
        assert img.get(100, 1) == img.get(3, 1)
        assert img.get(1, -50) == img.get(1, 0)

    def test_set_out_of_bounds_ignored(self):
        """Test writes outside the image are dropped."""
        from vstab.core.image import GrayscaleImage

        img = GrayscaleImage.new(2, 2)
        img.set(5, 5, 1.0)
        img.set(-1, 0, 1.0)
        assert np.all(img.data == 0)

    def test_buffer_length_mismatch(self):
        """Test a buffer that doesn't match the dimensions fails fast."""
        from vstab.core.image import GrayscaleImage

        with pytest.raises(ValueError):
            GrayscaleImage(np.zeros(10), 4, 4)

    def test_non_positive_dimensions(self):
        """Test zero-sized images are rejected."""
        from vstab.core.image import GrayscaleImage

        with pytest.raises(ValueError):
            GrayscaleImage.new(0, 4)

    def test_pixels_view(self):
        """Test pixels is a (height, width) view of the buffer."""
        from vstab.core.image import GrayscaleImage

        img = GrayscaleImage.new(5, 3)
        assert img.pixels.shape == (3, 5)
        img.pixels[1, 2] = 0.5
        assert img.get(2, 1) == pytest.approx(0.5)


class TestRgbToGray:
    """Tests for RGBA to grayscale conversion."""

    def test_white(self):
        """Test a white pixel converts to luminance 1."""
        from vstab.core.image import rgb_to_gray

        gray = rgb_to_gray([255, 255, 255, 255], 1, 1)
        assert abs(gray.data[0] - 1.0) < 0.01

    def test_luma_weights(self):
        """Test pure channels use the BT.601 weights."""
        from vstab.core.image import rgb_to_gray

        rgba = bytes([255, 0, 0, 255, 0, 255, 0, 255, 0, 0, 255, 255])
        gray = rgb_to_gray(rgba, 3, 1)
        assert gray.data[0] == pytest.approx(0.299, abs=1e-5)
        assert gray.data[1] == pytest.approx(0.587, abs=1e-5)
        assert gray.data[2] == pytest.approx(0.114, abs=1e-5)

    def test_short_buffer_is_zero_filled(self):
        """Test a partial frame degrades to black instead of failing."""
        from vstab.core.image import rgb_to_gray

        rgba = bytes([255, 255, 255, 255, 255, 255])
        gray = rgb_to_gray(rgba, 2, 2)
        assert gray.data[0] == pytest.approx(1.0, abs=0.01)
        assert np.all(gray.data[1:] == 0)

    def test_empty_buffer(self):
        """Test an empty buffer gives a black image."""
        from vstab.core.image import rgb_to_gray

        gray = rgb_to_gray(b"", 3, 2)
        assert gray.width == 3 and gray.height == 2
        assert np.all(gray.data == 0)

    def test_array_input(self):
        """Test (height, width, 4) arrays are accepted."""
        from vstab.core.image import rgb_to_gray

        rgba = np.zeros((2, 3, 4), dtype=np.uint8)
        rgba[1, 2] = [255, 255, 255, 255]
        gray = rgb_to_gray(rgba, 3, 2)
        assert gray.get(2, 1) == pytest.approx(1.0, abs=0.01)
        assert gray.get(0, 0) == 0


class TestImagePyramid:
    """Tests for the pyramid builder."""

    def test_level_sizes(self):
        """Test a 64x64 image builds 64, 32, 16."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import ImagePyramid

        pyr = ImagePyramid.build(GrayscaleImage.new(64, 64), 3)
        assert len(pyr) == 3
        assert [level.width for level in pyr.levels] == [64, 32, 16]

    def test_odd_sizes(self):
        """Test each level is ceil(previous / 2)."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import build_pyramid

        levels = build_pyramid(GrayscaleImage.new(5, 3), 4)
        sizes = [(level.width, level.height) for level in levels]
        assert sizes == [(5, 3), (3, 2), (2, 1), (1, 1)]

    def test_edge_averaging(self):
        """Test odd edges average the replicated edge pixel."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import ImagePyramid

        img = GrayscaleImage(np.array([0.0, 0.5, 1.0]), 3, 1)
        level = ImagePyramid.build(img, 2)[1]
        assert level.width == 2 and level.height == 1
        assert level.get(0, 0) == pytest.approx(0.25)
        assert level.get(1, 0) == pytest.approx(1.0)

    def test_level_zero_is_copy(self):
        """Test level 0 does not alias the source buffer."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import ImagePyramid

        img = GrayscaleImage.new(4, 4)
        pyr = ImagePyramid.build(img, 2)
        img.set(0, 0, 1.0)
        assert pyr[0].get(0, 0) == 0

    def test_minimum_one_level(self):
        """Test zero levels still yields the source image."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import ImagePyramid

        assert len(ImagePyramid.build(GrayscaleImage.new(8, 8), 0)) == 1


class TestGradients:
    """Tests for central-difference gradients."""

    def test_ramp_sign(self):
        """Test a horizontal ramp gives positive Ix and zero Iy inside."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import compute_gradients

        ramp = np.tile(np.arange(8, dtype=np.float32) / 7.0, (8, 1))
        ix, iy = compute_gradients(GrayscaleImage.from_array(ramp))
        assert ix[4, 4] > 0
        assert ix[4, 4] == pytest.approx(1.0 / 7.0)
        assert np.all(iy[1:-1, 1:-1] == 0)

    def test_border_is_zero(self):
        """Test the one-pixel border keeps zero gradient."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import compute_gradients

        rng = np.random.default_rng(0)
        ix, iy = compute_gradients(GrayscaleImage.from_array(rng.random((6, 7))))
        for g in (ix, iy):
            assert np.all(g[0, :] == 0) and np.all(g[-1, :] == 0)
            assert np.all(g[:, 0] == 0) and np.all(g[:, -1] == 0)

    def test_tiny_image(self):
        """Test images without interior pixels give all-zero gradients."""
        from vstab.core.image import GrayscaleImage
        from vstab.core.pyramid import compute_gradients

        ix, iy = compute_gradients(GrayscaleImage.new(2, 5))
        assert ix.shape == (5, 2)
        assert not ix.any() and not iy.any()


class TestStabilizationParams:
    """Tests for configuration handling."""

    def test_defaults(self):
        """Test default settings."""
        from vstab.core.config import StabilizationMethod, StabilizationParams

        params = StabilizationParams()
        assert params.method is StabilizationMethod.TRANSLATION
        assert params.smoothness == 30.0
        assert params.crop_ratio == 0.9
        assert params.smoothing_enabled is True

    def test_method_from_string(self):
        """Test methods parse from names and values."""
        from vstab.core.config import StabilizationMethod, StabilizationParams

        assert StabilizationParams(method="rotation").method is StabilizationMethod.ROTATION
        assert StabilizationMethod.parse("PERSPECTIVE") is StabilizationMethod.PERSPECTIVE
        with pytest.raises(ValueError):
            StabilizationMethod.parse("affine")

    @pytest.mark.parametrize("field,value", [
        ("crop_ratio", 0.0),
        ("crop_ratio", 1.5),
        ("smoothness", -1.0),
        ("window_size", 20),
        ("pyramid_levels", 0),
        ("grid_spacing", 0),
        ("max_iterations", 0),
    ])
    def test_invalid_values(self, field, value):
        """Test out-of-range settings are rejected."""
        from vstab.core.config import StabilizationParams

        with pytest.raises(ValueError):
            StabilizationParams(**{field: value})

    def test_save_load(self, tmp_path):
        """Test JSON save and load."""
        from vstab.core.config import StabilizationParams, load_params

        path = tmp_path / "params.json"
        StabilizationParams(method="rotation", smoothness=12.5, grid_spacing=24).save(path)

        with open(path) as f:
            assert json.load(f)["method"] == "rotation"

        loaded = load_params(path)
        assert loaded.smoothness == 12.5
        assert loaded.grid_spacing == 24
        assert loaded.method.value == "rotation"

    def test_partial_file_keeps_defaults(self, tmp_path):
        """Test missing keys keep their default values."""
        from vstab.core.config import load_params

        path = tmp_path / "params.json"
        path.write_text(json.dumps({"smoothness": 5}))
        params = load_params(path)
        assert params.smoothness == 5.0
        assert params.crop_ratio == 0.9

    def test_unknown_key(self):
        """Test unknown keys are rejected."""
        from vstab.core.config import StabilizationParams

        with pytest.raises(ValueError):
            StabilizationParams.from_dict({"smoothnes": 3})

    def test_missing_file(self, tmp_path):
        """Test loading a missing file raises FileNotFoundError."""
        from vstab.core.config import load_params

        with pytest.raises(FileNotFoundError):
            load_params(tmp_path / "nope.json")

    def test_env_overrides(self, monkeypatch):
        """Test VSTAB_* variables override matching fields only."""
        from vstab.core.config import StabilizationParams, params_from_env

        monkeypatch.setenv("VSTAB_SMOOTHNESS", "12")
        monkeypatch.setenv("VSTAB_METHOD", "rotation")
        monkeypatch.setenv("VSTAB_UNRELATED", "x")

        params = params_from_env(StabilizationParams(crop_ratio=0.8))
        assert params.smoothness == 12.0
        assert params.method.value == "rotation"
        assert params.crop_ratio == 0.8

    def test_replace(self):
        """Test replace returns a validated copy."""
        from vstab.core.config import StabilizationParams

        params = StabilizationParams()
        changed = params.replace(smoothness=3)
        assert changed.smoothness == 3.0
        assert params.smoothness == 30.0
        with pytest.raises(ValueError):
            params.replace(crop_ratio=2)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
