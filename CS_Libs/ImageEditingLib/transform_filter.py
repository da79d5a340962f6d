"""
Geometric Transform Filter.

Moves the matted foreground layer around the canvas in two fixed steps:

1. Perspective tilt: a per-scanline approximation of a keystone warp.
   Vertical tilt scales every row horizontally by a factor running linearly
   from ``1 - strength`` at the top to ``1 + strength`` at the bottom;
   horizontal tilt does the same for every column, left to right. Each
   scaled line stays centered. This is not a true projective transform.
2. Affine: translate by the pan offsets, rotate and scale uniformly around
   the canvas center.

The output canvas always has the input's size. Uncovered pixels are fully
transparent. Sampling is bilinear on premultiplied alpha so the matte edges
do not pick up dark fringes.

Example:
    >>> moved = apply_transform(layer, TransformSettings(rotate=5, scale=1.2, pan_x=10))
"""

import math
from typing import Any, Tuple

import numpy as np
from PIL import Image
from scipy import ndimage

from CS_Libs.ImageEditingLib.image_editing_ops import array_to_image, ensure_rgba, image_to_array
from CS_Libs.ImageEditingLib.image_models import TransformSettings
from CS_Libs.constants import MIN_SCALE, PERSPECTIVE_DIVISOR

# Keeps a line from collapsing when a tilt control is pushed past its range
MIN_LINE_FACTOR = 0.01


# ============================================================================
# Perspective Tilt
# ============================================================================

def _line_factors(control: float, count: int) -> np.ndarray:
    """Scale factor for each of ``count`` lines, linear from 1-s to 1+s."""
    strength = control / PERSPECTIVE_DIVISOR
    position = np.arange(count, dtype=np.float32) / max(count - 1, 1)
    factors = 1.0 - strength + 2.0 * strength * position
    return np.maximum(factors, MIN_LINE_FACTOR)


def perspective_source_coordinates(
    size: Tuple[int, int],
    vertical: float,
    horizontal: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Source sampling coordinates for every output pixel.

    The vertical tilt is applied first, then the horizontal tilt, folded
    into a single inverse mapping so the layer is resampled only once.

    Args:
        size: Canvas (width, height)
        vertical: Vertical tilt control (-100..100)
        horizontal: Horizontal tilt control (-100..100)

    Returns:
        Tuple of (source_rows, source_cols) float arrays of shape (H, W)
    """
    width, height = size
    rows, cols = np.mgrid[0:height, 0:width].astype(np.float32)
    center_x = (width - 1) / 2.0
    center_y = (height - 1) / 2.0

    src_rows = rows
    if horizontal:
        column_factors = _line_factors(horizontal, width)
        src_rows = center_y + (rows - center_y) / column_factors[np.newaxis, :]

    src_cols = cols
    if vertical:
        # Row factor is looked up at the row the horizontal pass read from
        strength = vertical / PERSPECTIVE_DIVISOR
        position = src_rows / max(height - 1, 1)
        row_factors = np.maximum(1.0 - strength + 2.0 * strength * position, MIN_LINE_FACTOR)
        src_cols = center_x + (cols - center_x) / row_factors

    return src_rows, src_cols


def apply_perspective(image: Any, vertical: float = 0.0, horizontal: float = 0.0) -> Any:
    """
    Apply the per-scanline perspective tilt.

    Args:
        image: RGBA PIL Image
        vertical: Vertical tilt (-100..100), rows widen toward the bottom
                  for positive values
        horizontal: Horizontal tilt (-100..100), columns lengthen toward
                    the right for positive values

    Returns:
        New RGBA PIL Image of the same size
    """
    image = ensure_rgba(image)
    if not vertical and not horizontal:
        return image.copy()

    pixels = image_to_array(image)
    alpha = pixels[..., 3:4] / 255.0
    premultiplied = np.concatenate([pixels[..., :3] * alpha, pixels[..., 3:4]], axis=-1)

    src_rows, src_cols = perspective_source_coordinates(image.size, vertical, horizontal)
    coordinates = np.stack([src_rows, src_cols])

    warped = np.empty_like(premultiplied)
    for channel in range(4):
        warped[..., channel] = ndimage.map_coordinates(
            premultiplied[..., channel],
            coordinates,
            order=1,
            mode="constant",
            cval=0.0,
        )

    out_alpha = warped[..., 3:4]
    safe_alpha = np.where(out_alpha > 0, out_alpha, 1.0)
    warped[..., :3] = np.where(out_alpha > 0, warped[..., :3] * 255.0 / safe_alpha, 0.0)
    return array_to_image(warped)


# ============================================================================
# Rotate / Scale / Pan
# ============================================================================

def affine_coefficients(size: Tuple[int, int], transform: TransformSettings) -> Tuple[float, ...]:
    """
    Inverse affine coefficients for ``Image.transform``.

    The forward mapping draws the layer centered on the canvas center
    shifted by the pan offsets, rotated by ``rotate`` degrees and scaled by
    ``scale``. Pillow needs the inverse: output (x, y) to input coordinates.

    Returns:
        (a, b, c, d, e, f) so that input = (a*x + b*y + c, d*x + e*y + f)
    """
    width, height = size
    scale = max(MIN_SCALE, float(transform.scale))
    theta = math.radians(transform.rotate)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)

    center_x = width / 2.0
    center_y = height / 2.0
    origin_x = center_x + (transform.pan_x / 100.0) * width
    origin_y = center_y + (transform.pan_y / 100.0) * height

    a = cos_t / scale
    b = sin_t / scale
    c = center_x - (cos_t * origin_x + sin_t * origin_y) / scale
    d = -sin_t / scale
    e = cos_t / scale
    f = center_y - (-sin_t * origin_x + cos_t * origin_y) / scale
    return (a, b, c, d, e, f)


def apply_affine(image: Any, transform: TransformSettings) -> Any:
    """
    Rotate, scale and pan a layer around the canvas center.

    Args:
        image: RGBA PIL Image
        transform: Transform settings (perspective and crop are ignored)

    Returns:
        New RGBA PIL Image of the same size
    """
    image = ensure_rgba(image)
    if not transform.has_affine():
        return image.copy()

    premultiplied = image.convert("RGBa")
    moved = premultiplied.transform(
        image.size,
        Image.Transform.AFFINE,
        affine_coefficients(image.size, transform),
        resample=Image.Resampling.BILINEAR,
    )
    return moved.convert("RGBA")


def apply_transform(image: Any, transform: TransformSettings) -> Any:
    """
    Apply the full geometric transform: perspective tilt, then affine.

    The order is fixed; swapping it changes the result.

    Args:
        image: Fully color-processed RGBA PIL Image
        transform: TransformSettings (crop is handled later in the pipeline)

    Returns:
        New RGBA PIL Image with the input's canvas size
    """
    image = ensure_rgba(image)
    if transform.is_identity():
        return image.copy()

    layer = apply_perspective(image, transform.vertical, transform.horizontal)
    return apply_affine(layer, transform)
