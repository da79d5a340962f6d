"""
Tone and Color Adjustment Filter.

Applies photographic adjustments to the retained (alpha > 0) pixels of a
keyed foreground. The stages run in a fixed order, each reading the
previous stage's output:

1. Sharpness (unsharp residual against the original foreground)
2. Exposure (stop-based gain)
3. Brilliance, highlights, shadows (luminance-weighted tonal shifts)
4. Contrast
5. Brightness
6. Black point
7. Saturation
8. Warmth
9. Tint

Channels are clamped to 0-255 once, after the last stage. A control left
at exactly 0 skips its stage.

Example:
    >>> adjusted = apply_adjustments(keyed, ImageAdjustments(exposure=25, warmth=10))
"""

import logging
from typing import Any, Optional

import numpy as np
from PIL import ImageFilter

from CS_Libs.ImageEditingLib.color_utils import luminance
from CS_Libs.ImageEditingLib.image_editing_ops import array_to_image, ensure_rgba, image_to_array
from CS_Libs.ImageEditingLib.image_models import ImageAdjustments
from CS_Libs.constants import (
    BRILLIANCE_STRENGTH,
    CONTRAST_INPUT_SCALE,
    EXPOSURE_STOP_DIVISOR,
    MID_GRAY,
    SHARPEN_AMOUNT_DIVISOR,
    SHARPEN_BLUR_RADIUS,
    TONAL_RANGE_STRENGTH,
)

logger = logging.getLogger(__name__)


def sharpen_residual(original: Any, radius: float = SHARPEN_BLUR_RADIUS) -> np.ndarray:
    """
    High-frequency residual of an image: original minus its Gaussian blur.

    Args:
        original: PIL Image the residual is taken from
        radius: Gaussian blur radius in pixels

    Returns:
        Float (H, W, 3) array
    """
    rgb = ensure_rgba(original).convert("RGB")
    blurred = rgb.filter(ImageFilter.GaussianBlur(radius=radius))
    return np.asarray(rgb, dtype=np.float32) - np.asarray(blurred, dtype=np.float32)


def contrast_factor(contrast: float) -> float:
    """
    Classic contrast factor for a control value in -100..100.

    The control is scaled to -255..255 first.
    """
    c = max(-255.0, min(255.0, contrast * CONTRAST_INPUT_SCALE))
    return (259.0 * (c + 255.0)) / (255.0 * (259.0 - c))


def apply_tonal_range(rgb: np.ndarray, adjustments: ImageAdjustments) -> np.ndarray:
    """
    Apply brilliance, highlights and shadows.

    Brilliance pulls every pixel toward mid-gray (positive) or pushes it away
    (negative) in proportion to its luminance distance from 128. Shadows only
    moves pixels darker than 128 and highlights only pixels brighter than 128,
    each weighted by how deep into its range the pixel sits.
    """
    lum = luminance(rgb)
    shift = np.zeros(lum.shape, dtype=np.float32)

    if adjustments.brilliance:
        shift += (adjustments.brilliance / 100.0) * (MID_GRAY - lum) * BRILLIANCE_STRENGTH

    if adjustments.shadows:
        weight = np.clip((MID_GRAY - lum) / MID_GRAY, 0.0, 1.0)
        shift += (adjustments.shadows / 100.0) * weight * TONAL_RANGE_STRENGTH

    if adjustments.highlights:
        weight = np.clip((lum - MID_GRAY) / (255.0 - MID_GRAY), 0.0, 1.0)
        shift += (adjustments.highlights / 100.0) * weight * TONAL_RANGE_STRENGTH

    return rgb + shift[..., np.newaxis]


def adjust_pixels(
    rgb: np.ndarray,
    adjustments: ImageAdjustments,
    residual: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Run the adjustment stages on a float RGB array.

    Args:
        rgb: Float (..., 3) array
        adjustments: Adjustment controls
        residual: Sharpening residual, required when sharpness != 0

    Returns:
        New float array clamped to 0-255
    """
    rgb = np.array(rgb, dtype=np.float32)

    if adjustments.sharpness and residual is not None:
        rgb += residual * (adjustments.sharpness / SHARPEN_AMOUNT_DIVISOR)

    if adjustments.exposure:
        rgb *= 2.0 ** (adjustments.exposure / EXPOSURE_STOP_DIVISOR)

    if adjustments.brilliance or adjustments.highlights or adjustments.shadows:
        rgb = apply_tonal_range(rgb, adjustments)

    if adjustments.contrast:
        rgb = contrast_factor(adjustments.contrast) * (rgb - MID_GRAY) + MID_GRAY

    if adjustments.brightness:
        rgb += adjustments.brightness

    if adjustments.black_point:
        rgb = np.maximum(0.0, rgb - adjustments.black_point)

    if adjustments.saturation:
        gray = luminance(rgb)[..., np.newaxis]
        rgb = gray + (rgb - gray) * (1.0 + adjustments.saturation / 100.0)

    if adjustments.warmth:
        rgb[..., 0] += adjustments.warmth
        rgb[..., 2] -= adjustments.warmth

    if adjustments.tint:
        rgb[..., 1] += adjustments.tint

    return np.clip(rgb, 0.0, 255.0)


def apply_adjustments(
    image: Any,
    adjustments: ImageAdjustments,
    original: Optional[Any] = None,
) -> Any:
    """
    Apply tone and color adjustments to the visible pixels of an image.

    Args:
        image: Keyed RGBA PIL Image
        adjustments: ImageAdjustments controls
        original: Unkeyed source used for the sharpening residual
                  (defaults to ``image``)

    Returns:
        New RGBA PIL Image; fully transparent pixels are left as they were

    Raises:
        TypeError: If image is not a PIL Image
        ValueError: If original and image differ in size
    """
    image = ensure_rgba(image)
    if adjustments.is_identity():
        return image.copy()

    residual = None
    if adjustments.sharpness:
        source = original if original is not None else image
        if source.size != image.size:
            raise ValueError(
                f"Sharpen source size {source.size} does not match image size {image.size}"
            )
        residual = sharpen_residual(source)

    pixels = image_to_array(image).copy()
    adjusted = adjust_pixels(pixels[..., :3], adjustments, residual)

    visible = pixels[..., 3] > 0
    pixels[..., :3] = np.where(visible[..., np.newaxis], adjusted, pixels[..., :3])

    logger.debug(f"Adjusted {int(visible.sum())} visible pixels")
    return array_to_image(pixels)
