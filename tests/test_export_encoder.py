"""
Tests for export encoding and file output.

Tests cover:
- ExportSettings validation
- PNG and JPEG encoding
- The JPEG byte-budget loop
- ExportWriter filename tags and path checks
"""

import io
from datetime import datetime

import numpy as np
import pytest
from PIL import Image

from CS_Libs.ServicesLib.export_encoder import (
    ExportResult,
    ExportSettings,
    ExportWriter,
    encode_for_export,
)

FIXED_NOW = datetime(2024, 5, 6, 7, 8, 9)


@pytest.fixture
def noisy_image():
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(64, 64, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return Image.fromarray(pixels, "RGBA")


class TestExportSettings:
    """Tests for ExportSettings."""

    def test_defaults(self):
        settings = ExportSettings()
        assert settings.format == "png"
        assert settings.quality == pytest.approx(0.92)
        assert settings.max_bytes is None
        assert settings.extension == ".png"

    def test_jpg_alias(self):
        settings = ExportSettings(format="JPG")
        assert settings.format == "jpeg"
        assert settings.extension == ".jpg"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"format": "gif"},
            {"quality": 1.5},
            {"quality": -0.1},
            {"scale": 0.05},
            {"scale": 4.0},
            {"max_size_kb": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ExportSettings(**kwargs)

    def test_max_bytes(self):
        assert ExportSettings(max_size_kb=2).max_bytes == 2048

    def test_from_dict_ignores_unknown(self):
        settings = ExportSettings.from_dict({"format": "jpeg", "quality": 0.5, "dpi": 300})
        assert settings.to_dict() == {"format": "jpeg", "quality": 0.5, "max_size_kb": None, "scale": 1.0}


class TestEncodeForExport:
    """Tests for encode_for_export."""

    def test_png_is_lossless(self, gradient_image):
        result = encode_for_export(gradient_image, ExportSettings())

        assert result.attempts == 1
        assert result.byte_size == len(result.data)
        decoded = Image.open(io.BytesIO(result.data)).convert("RGBA")
        assert decoded.tobytes() == gradient_image.tobytes()

    def test_png_keeps_alpha(self):
        image = Image.new("RGBA", (4, 4), (10, 20, 30, 0))
        decoded = Image.open(io.BytesIO(encode_for_export(image).data))
        assert decoded.mode == "RGBA"
        assert decoded.getpixel((0, 0))[3] == 0

    def test_jpeg_flattens_onto_black(self):
        image = Image.new("RGBA", (16, 16), (255, 255, 255, 0))

        result = encode_for_export(image, ExportSettings(format="jpeg"))

        decoded = Image.open(io.BytesIO(result.data))
        assert decoded.mode == "RGB"
        assert all(channel < 8 for channel in decoded.getpixel((8, 8)))

    def test_scale(self, gradient_image):
        result = encode_for_export(gradient_image, ExportSettings(scale=0.5))
        assert result.size == (16, 12)
        assert Image.open(io.BytesIO(result.data)).size == (16, 12)

    def test_generous_budget_single_attempt(self, noisy_image):
        result = encode_for_export(noisy_image, ExportSettings(format="jpeg", max_size_kb=10000))
        assert result.attempts == 1
        assert result.quality == pytest.approx(0.92)

    def test_impossible_budget_stops_at_floor(self, noisy_image):
        settings = ExportSettings(format="jpeg", max_size_kb=0.001)

        result = encode_for_export(noisy_image, settings)

        assert result.attempts == 10
        assert result.quality == pytest.approx(0.1)
        assert not result.within_budget(settings)

    def test_budget_lowers_quality(self, noisy_image):
        first = encode_for_export(noisy_image, ExportSettings(format="jpeg"))
        budget_kb = (first.byte_size - 1) / 1024

        result = encode_for_export(noisy_image, ExportSettings(format="jpeg", max_size_kb=budget_kb))

        assert result.attempts >= 2
        assert result.quality < 0.92

    def test_png_ignores_budget(self, noisy_image):
        result = encode_for_export(noisy_image, ExportSettings(max_size_kb=0.001))
        assert result.attempts == 1

    def test_rejects_non_image(self):
        with pytest.raises(TypeError):
            encode_for_export(b"bytes")


class TestExportWriter:
    """Tests for ExportWriter."""

    def _result(self, fmt="png"):
        return ExportResult(b"payload", 7, 1.0, 1, fmt, (1, 1))

    def test_date_and_counter_tags(self, tmp_path):
        writer = ExportWriter("shot-{DATE}_{counter:3}", base_directory=str(tmp_path))

        path = writer.resolve_filename(".png", now=FIXED_NOW)

        assert path == tmp_path.resolve() / "shot-2024-05-06_000.png"

    def test_time_and_custom_format(self, tmp_path):
        writer = ExportWriter("{TIME}-{DATETIME:%Y%m%d}.jpg", base_directory=str(tmp_path))
        assert writer.resolve_filename(now=FIXED_NOW).name == "07-08-09-20240506.jpg"

    def test_timestamp_tag(self, tmp_path):
        writer = ExportWriter("{TIMESTAMP}", base_directory=str(tmp_path))
        expected = str(int(FIXED_NOW.timestamp() * 1000))
        assert writer.resolve_filename(now=FIXED_NOW).name == expected

    def test_existing_suffix_kept(self, tmp_path):
        writer = ExportWriter("final.jpeg", base_directory=str(tmp_path))
        assert writer.resolve_filename(".png").name == "final.jpeg"

    def test_traversal_rejected(self, tmp_path):
        writer = ExportWriter("../escape.png", base_directory=str(tmp_path))
        with pytest.raises(ValueError):
            writer.resolve_filename()

    def test_absolute_path_outside_base_rejected(self, tmp_path):
        outside = tmp_path.parent / "elsewhere.png"
        writer = ExportWriter(str(outside), base_directory=str(tmp_path / "exports"))
        with pytest.raises(ValueError):
            writer.resolve_filename()

    def test_relative_base_directory_rejected(self):
        with pytest.raises(ValueError):
            ExportWriter("x.png", base_directory="relative/dir")

    def test_write_and_counter(self, tmp_path):
        writer = ExportWriter("out/{COUNTER}", base_directory=str(tmp_path))

        first = writer.write(self._result())
        second = writer.write(self._result("jpeg"))

        assert first.name == "0.png"
        assert second.name == "1.jpg"
        assert first.read_bytes() == b"payload"
        assert writer.counter == 2

    def test_existing_file_not_overwritten(self, tmp_path):
        writer = ExportWriter("same.png", base_directory=str(tmp_path))
        writer.write(self._result())

        with pytest.raises(ValueError):
            writer.write(self._result())

    def test_overwrite(self, tmp_path):
        writer = ExportWriter("same.png", overwrite=True, base_directory=str(tmp_path))
        writer.write(self._result())
        path = writer.write(ExportResult(b"second", 6, 1.0, 1, "png", (1, 1)))
        assert path.read_bytes() == b"second"
