"""
Crop and viewport resolution.

In edit mode the whole composite is shown so the crop overlay can be
adjusted against the full scene. Otherwise the normalized crop rectangle
is converted to pixels and that region is copied out 1:1.
"""

import math
from typing import Any, Tuple

from CS_Libs.ImageEditingLib.image_editing_ops import ensure_rgba
from CS_Libs.ImageEditingLib.image_models import CropRect


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def crop_box(crop: CropRect, size: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """
    Pixel box for a normalized crop rectangle.

    Degenerate rectangles are clamped to at least one pixel and to the
    image bounds instead of raising.

    Args:
        crop: Normalized CropRect
        size: Image (width, height)

    Returns:
        (left, upper, right, lower) box for ``Image.crop``
    """
    width, height = size
    box_w = min(width, max(1, _round_half_up(crop.width * width)))
    box_h = min(height, max(1, _round_half_up(crop.height * height)))
    left = min(max(0, _round_half_up(crop.x * width)), width - box_w)
    top = min(max(0, _round_half_up(crop.y * height)), height - box_h)
    return (left, top, left + box_w, top + box_h)


def resolve_viewport(image: Any, crop: CropRect, edit_mode: bool = False) -> Any:
    """
    Produce the output raster for the current crop mode.

    Args:
        image: Full composited RGBA PIL Image
        crop: Normalized crop rectangle
        edit_mode: True while the crop is being edited interactively

    Returns:
        New PIL Image: the full composite in edit mode, otherwise the
        cropped region
    """
    image = ensure_rgba(image)
    if edit_mode:
        return image.copy()
    return image.crop(crop_box(crop, image.size))
