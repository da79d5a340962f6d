"""
Pytest configuration and shared fixtures for Chroma Studio tests.

This module provides shared test fixtures and configuration
used across multiple test modules.
"""

import io

import numpy as np
import pytest
from PIL import Image


def solid_image(size, color):
    """Create an RGBA image filled with a single color."""
    if len(color) == 3:
        color = tuple(color) + (255,)
    return Image.new("RGBA", size, color)


def encode_png(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_solid():
    """Factory fixture: make_solid(size, color) -> RGBA image."""
    return solid_image


@pytest.fixture
def png_bytes():
    """Factory fixture: png_bytes(image) -> encoded PNG bytes."""
    return encode_png


@pytest.fixture
def temp_preset_dir(tmp_path):
    """
    Provide a temporary directory for preset files.

    Args:
        tmp_path: Pytest's built-in temporary directory fixture

    Returns:
        Path object pointing to a temporary directory
    """
    return tmp_path


@pytest.fixture
def green_screen():
    """4x4 foreground that is entirely pure green."""
    return solid_image((4, 4), (0, 255, 0))


@pytest.fixture
def red_backdrop():
    """Solid red backdrop of a different size than the foreground."""
    return solid_image((8, 6), (255, 0, 0))


@pytest.fixture
def gradient_image():
    """
    Opaque 32x24 RGB gradient.

    Red runs left to right, green top to bottom, blue is constant.
    """
    xs = np.linspace(0, 255, 32, dtype=np.float32)
    ys = np.linspace(0, 255, 24, dtype=np.float32)
    pixels = np.zeros((24, 32, 4), dtype=np.uint8)
    pixels[..., 0] = np.rint(xs)[np.newaxis, :]
    pixels[..., 1] = np.rint(ys)[:, np.newaxis]
    pixels[..., 2] = 96
    pixels[..., 3] = 255
    return Image.fromarray(pixels)


@pytest.fixture
def sample_rgba_colors():
    """
    Provide a list of sample RGBA color tuples for testing.

    Returns:
        List of (R, G, B, A) tuples with common test colors
    """
    return [
        (255, 0, 0, 255),    # Red
        (0, 255, 0, 255),    # Green
        (0, 0, 255, 255),    # Blue
        (255, 255, 255, 255),  # White
        (0, 0, 0, 255),      # Black
        (128, 128, 128, 255),  # Gray
    ]
