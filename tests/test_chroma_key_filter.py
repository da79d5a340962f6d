"""
Tests for Chroma Key Filter.

Tests cover:
- Alpha matte thresholds and the linear ramp
- Alpha monotonicity in key distance
- Spill suppression band and key channel selection
- Input validation and immutability
"""

import unittest

import numpy as np
from PIL import Image

from CS_Libs.ImageEditingLib.chroma_key_filter import (
    apply_chroma_key,
    compute_alpha_matte,
    compute_key_distance,
    suppress_spill,
)
from CS_Libs.ImageEditingLib.image_models import ChromaSettings


def _single_pixel(color):
    return Image.new("RGBA", (1, 1), tuple(color) + (255,))


class TestKeyDistance(unittest.TestCase):
    """Test compute_key_distance."""

    def test_key_color_has_zero_distance(self):
        pixels = np.array([[[0, 255, 0, 255]]], dtype=np.float32)
        self.assertEqual(compute_key_distance(pixels, (0, 255, 0))[0, 0], 0.0)

    def test_opposite_corner_is_about_one(self):
        pixels = np.array([[[0, 0, 0, 255]]], dtype=np.float32)
        self.assertAlmostEqual(
            float(compute_key_distance(pixels, (255, 255, 255))[0, 0]), 1.0, places=3
        )


class TestAlphaMatte(unittest.TestCase):
    """Test compute_alpha_matte."""

    def test_three_bands(self):
        settings = ChromaSettings(similarity=0.35, smoothness=0.1)
        distance = np.array([0.0, 0.3, 0.4, 0.5, 1.0], dtype=np.float32)

        alpha = compute_alpha_matte(distance, settings)

        self.assertEqual(alpha[0], 0.0)
        self.assertEqual(alpha[1], 0.0)
        self.assertAlmostEqual(float(alpha[2]), 127.5, delta=0.01)
        self.assertEqual(alpha[3], 255.0)
        self.assertEqual(alpha[4], 255.0)

    def test_zero_smoothness_is_hard_step(self):
        settings = ChromaSettings(similarity=0.35, smoothness=0.0)
        distance = np.array([0.1, 0.34, 0.36, 0.9], dtype=np.float32)

        alpha = compute_alpha_matte(distance, settings)

        np.testing.assert_array_equal(alpha, [0.0, 0.0, 255.0, 255.0])

    def test_monotonic_in_distance(self):
        distance = np.linspace(0.0, 1.0, 501, dtype=np.float32)
        for similarity, smoothness in [(0.0, 0.0), (0.2, 0.0), (0.35, 0.1), (0.1, 0.5), (0.9, 0.3)]:
            settings = ChromaSettings(similarity=similarity, smoothness=smoothness)
            alpha = compute_alpha_matte(distance, settings)
            self.assertTrue(np.all(np.diff(alpha) >= 0), f"{similarity}, {smoothness}")
            self.assertTrue(np.all((alpha >= 0) & (alpha <= 255)))


class TestApplyChromaKey(unittest.TestCase):
    """Test apply_chroma_key on images."""

    def test_exact_key_is_transparent(self):
        image = Image.new("RGBA", (3, 2), (0, 177, 64, 255))
        result = apply_chroma_key(image, ChromaSettings(similarity=0.05, key_color="#00b140"))

        alphas = np.asarray(result)[..., 3]
        self.assertTrue(np.all(alphas == 0))

    def test_far_color_is_opaque(self):
        result = apply_chroma_key(
            _single_pixel((0, 0, 0)),
            ChromaSettings(similarity=0.5, smoothness=0.2, spill=0.0, key_color="#ffffff"),
        )
        self.assertEqual(result.getpixel((0, 0)), (0, 0, 0, 255))

    def test_spill_suppressed_inside_ramp(self):
        """A greenish pixel in the ramp keeps partial alpha and loses its green cast."""
        settings = ChromaSettings(similarity=0.35, smoothness=0.1, spill=0.1, key_color="#00ff00")
        result = apply_chroma_key(_single_pixel((120, 200, 100)), settings)

        r, g, b, a = result.getpixel((0, 0))
        self.assertEqual((r, g, b), (120, 110, 100))
        self.assertGreater(a, 55)
        self.assertLess(a, 72)

    def test_spill_suppressed_in_opaque_band(self):
        """Past the ramp but inside the spill band: opaque, green clamped."""
        settings = ChromaSettings(similarity=0.1, smoothness=0.1, spill=0.3, key_color="#00ff00")
        # distance to the key is about 0.31
        result = apply_chroma_key(_single_pixel((80, 160, 60)), settings)

        r, g, b, a = result.getpixel((0, 0))
        self.assertEqual(a, 255)
        self.assertEqual((r, b), (80, 60))
        self.assertEqual(g, (r + b) // 2)

    def test_pixels_beyond_spill_band_untouched(self):
        settings = ChromaSettings(similarity=0.35, smoothness=0.1, spill=0.1, key_color="#00ff00")
        result = apply_chroma_key(_single_pixel((200, 50, 50)), settings)
        self.assertEqual(result.getpixel((0, 0)), (200, 50, 50, 255))

    def test_spill_uses_key_dominant_channel(self):
        """With a blue key the blue channel is the one clamped."""
        settings = ChromaSettings(similarity=0.1, smoothness=0.2, spill=0.2, key_color="#0000ff")
        result = apply_chroma_key(_single_pixel((60, 40, 180)), settings)

        r, g, b, a = result.getpixel((0, 0))
        self.assertGreater(a, 0)
        self.assertEqual((r, g), (60, 40))
        self.assertEqual(b, 50)

    def test_no_spill_pass_without_ramp_or_band(self):
        """smoothness=0 and spill=0 leave retained pixels' color alone."""
        settings = ChromaSettings(similarity=0.1, smoothness=0.0, spill=0.0, key_color="#00ff00")
        result = apply_chroma_key(_single_pixel((120, 250, 60)), settings)
        self.assertEqual(result.getpixel((0, 0)), (120, 250, 60, 255))

    def test_input_not_modified(self):
        image = Image.new("RGBA", (2, 2), (0, 255, 0, 255))
        before = image.tobytes()
        result = apply_chroma_key(image, ChromaSettings(key_color="#00ff00"))

        self.assertEqual(image.tobytes(), before)
        self.assertIsNot(result, image)

    def test_rgb_input_converted(self):
        image = Image.new("RGB", (2, 2), (255, 255, 255))
        result = apply_chroma_key(image, ChromaSettings(key_color="#00ff00"))
        self.assertEqual(result.mode, "RGBA")
        self.assertEqual(result.size, (2, 2))

    def test_invalid_input_type(self):
        with self.assertRaises(TypeError):
            apply_chroma_key("not an image", ChromaSettings())


class TestSuppressSpill(unittest.TestCase):
    """Test suppress_spill directly."""

    def test_transparent_pixels_skipped(self):
        pixels = np.array([[[100, 250, 100, 255]]], dtype=np.float32)
        distance = np.array([[0.2]], dtype=np.float32)
        alpha = np.array([[0.0]], dtype=np.float32)

        suppress_spill(pixels, distance, alpha, ChromaSettings(similarity=0.3))

        self.assertEqual(pixels[0, 0, 1], 250.0)

    def test_key_channel_below_average_untouched(self):
        pixels = np.array([[[200, 100, 200, 255]]], dtype=np.float32)
        distance = np.array([[0.4]], dtype=np.float32)
        alpha = np.array([[128.0]], dtype=np.float32)

        suppress_spill(pixels, distance, alpha, ChromaSettings())

        self.assertEqual(pixels[0, 0, 1], 100.0)


if __name__ == "__main__":
    unittest.main()
