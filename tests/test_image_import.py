"""
Tests for image acquisition.

Tests cover:
- Supported formats
- Loading files, bytes and data URLs
- Decode failures raising ImageDecodeError
- Converting numpy arrays and PIL images to RGBA
"""

import base64
import io
import tempfile
import unittest
from pathlib import Path

import numpy as np
from PIL import Image

from CS_Libs.ServicesLib.image_import import (
    ImageDecodeError,
    coerce_raster,
    decode_data_url,
    decode_image_bytes,
    get_supported_image_formats,
    is_supported_format,
    load_image_file,
)


def _png_bytes(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class TestSupportedFormats(unittest.TestCase):
    """Test format helpers."""

    def test_standard_formats(self):
        formats = get_supported_image_formats()
        for ext in (".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".webp"):
            self.assertIn(ext, formats)
        self.assertEqual(formats, sorted(formats))

    def test_is_supported_case_insensitive(self):
        self.assertTrue(is_supported_format(Path("photo.JPG")))
        self.assertFalse(is_supported_format(Path("clip.mp4")))


class TestLoadImageFile(unittest.TestCase):
    """Test load_image_file."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dir = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_loads_rgb_as_rgba(self):
        path = self.dir / "photo.jpg"
        Image.new("RGB", (7, 5), (10, 200, 30)).save(path)

        image = load_image_file(path)

        self.assertEqual(image.mode, "RGBA")
        self.assertEqual(image.size, (7, 5))

    def test_gif_first_frame(self):
        path = self.dir / "anim.gif"
        frames = [Image.new("RGB", (4, 4), color) for color in [(255, 0, 0), (0, 0, 255)]]
        frames[0].save(path, save_all=True, append_images=frames[1:])

        image = load_image_file(path)

        r, g, b, a = image.getpixel((0, 0))
        self.assertGreater(r, 200)
        self.assertLess(b, 50)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_image_file(self.dir / "nope.png")

    def test_unsupported_extension(self):
        path = self.dir / "notes.txt"
        path.write_text("hello")
        with self.assertRaises(ImageDecodeError):
            load_image_file(path)

    def test_corrupt_file(self):
        path = self.dir / "broken.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n garbage")
        with self.assertRaises(ImageDecodeError):
            load_image_file(path)

    def test_directory_rejected(self):
        with self.assertRaises(ImageDecodeError):
            load_image_file(self.dir)

    def test_decode_error_is_ioerror(self):
        self.assertTrue(issubclass(ImageDecodeError, IOError))


class TestDecodeBytes(unittest.TestCase):
    """Test decode_image_bytes and decode_data_url."""

    def test_decode_png_bytes(self):
        data = _png_bytes(Image.new("RGBA", (3, 2), (1, 2, 3, 4)))
        image = decode_image_bytes(data)
        self.assertEqual(image.getpixel((0, 0)), (1, 2, 3, 4))

    def test_empty_bytes(self):
        with self.assertRaises(ImageDecodeError):
            decode_image_bytes(b"")

    def test_garbage_bytes(self):
        with self.assertRaises(ImageDecodeError):
            decode_image_bytes(b"not an image at all")

    def test_data_url(self):
        payload = base64.b64encode(_png_bytes(Image.new("RGB", (2, 2), (9, 8, 7)))).decode()
        image = decode_data_url(f"data:image/png;base64,{payload}")
        self.assertEqual(image.getpixel((1, 1)), (9, 8, 7, 255))

    def test_data_url_not_image(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url("data:text/plain;base64,aGVsbG8=")

    def test_data_url_missing_separator(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url("data:image/png;base64")

    def test_data_url_bad_base64(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url("data:image/png;base64,@@@@")

    def test_not_a_data_url(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url("https://example.com/a.png")


class TestCoerceRaster(unittest.TestCase):
    """Test coerce_raster."""

    def test_pil_rgba_is_copied(self):
        image = Image.new("RGBA", (2, 2), (1, 2, 3, 4))
        result = coerce_raster(image)
        self.assertIsNot(result, image)
        self.assertEqual(result.tobytes(), image.tobytes())

    def test_pil_other_mode_converted(self):
        result = coerce_raster(Image.new("L", (2, 2), 77))
        self.assertEqual(result.getpixel((0, 0)), (77, 77, 77, 255))

    def test_gray_array(self):
        result = coerce_raster(np.full((3, 5), 40, dtype=np.uint8))
        self.assertEqual(result.size, (5, 3))
        self.assertEqual(result.getpixel((0, 0)), (40, 40, 40, 255))

    def test_rgb_array_gets_opaque_alpha(self):
        result = coerce_raster(np.zeros((2, 2, 3), dtype=np.uint8))
        self.assertEqual(result.getpixel((1, 1)), (0, 0, 0, 255))

    def test_float_array_clamped(self):
        pixels = np.array([[[300.0, -5.0, 127.6, 255.0]]])
        result = coerce_raster(pixels)
        self.assertEqual(result.getpixel((0, 0)), (255, 0, 128, 255))

    def test_bad_shape(self):
        with self.assertRaises(ValueError):
            coerce_raster(np.zeros((2, 2, 2), dtype=np.uint8))

    def test_bad_type(self):
        with self.assertRaises(TypeError):
            coerce_raster([[1, 2], [3, 4]])


if __name__ == "__main__":
    unittest.main()
