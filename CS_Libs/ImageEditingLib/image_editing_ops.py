"""
Core image editing operations for Chroma Studio.

This module provides the low-level helpers shared by every pipeline stage:
conversion between Pillow images and float pixel arrays, and standard alpha
compositing of one layer over another.

Functions:
    ensure_rgba: Validate a Pillow image and return it in RGBA mode
    image_to_array: Convert an RGBA image to a float32 (H, W, 4) array
    array_to_image: Round, clamp and convert an array back to an RGBA image
    composite_over: Alpha composite a foreground layer over a backdrop
"""

from typing import Any

import numpy as np
from PIL import Image


def ensure_rgba(image: Any) -> Any:
    """
    Validate that ``image`` is a Pillow image and return it in RGBA mode.

    Args:
        image: A PIL Image

    Returns:
        The same image if already RGBA, otherwise an RGBA copy

    Raises:
        TypeError: If image is not a PIL Image
    """
    if not hasattr(image, "mode") or not hasattr(image, "convert"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def image_to_array(image: Any) -> np.ndarray:
    """Convert an image to a float32 array of shape (height, width, 4)."""
    return np.asarray(ensure_rgba(image), dtype=np.float32)


def array_to_image(array: np.ndarray) -> Any:
    """
    Convert a float RGBA array back to an image.

    Values are rounded to the nearest integer and clamped to 0-255.
    """
    pixels = np.ascontiguousarray(np.clip(np.rint(array), 0, 255).astype(np.uint8))
    # (H, W, 4) uint8 is read as RGBA
    return Image.fromarray(pixels)


def composite_over(foreground: Any, backdrop: Any) -> Any:
    """
    Alpha composite ``foreground`` over ``backdrop``.

    Per channel: out = fg * a + bg * (1 - a). The backdrop is expected to
    be opaque, so the result is opaque as well.

    Args:
        foreground: RGBA PIL Image (the matted, transformed subject)
        backdrop: PIL Image of the same size

    Returns:
        New RGBA PIL Image

    Raises:
        ValueError: If the two layers differ in size
    """
    foreground = ensure_rgba(foreground)
    backdrop = ensure_rgba(backdrop)
    if foreground.size != backdrop.size:
        raise ValueError(
            f"Layer size mismatch: foreground {foreground.size} vs backdrop {backdrop.size}"
        )
    return Image.alpha_composite(backdrop, foreground)
