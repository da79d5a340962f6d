"""
Chroma Key Filter.

Removes a solid-color screen from a foreground image by measuring each
pixel's euclidean RGB distance to the key color:

- distance below ``similarity``: fully transparent
- distance within ``similarity + smoothness``: linear alpha ramp
- anything farther: fully opaque

Pixels that survive keying but sit within ``similarity + smoothness + spill``
of the key get their key channel clamped to the average of the other two
channels (spill suppression).

Example:
    >>> from PIL import Image
    >>> from CS_Libs.ImageEditingLib.image_models import ChromaSettings
    >>> photo = Image.open("portrait.png")
    >>> keyed = apply_chroma_key(photo, ChromaSettings(key_color="#00ff00"))
"""

from typing import Any, Sequence, Tuple

import numpy as np

from CS_Libs.ImageEditingLib.color_utils import dominant_channel
from CS_Libs.ImageEditingLib.image_editing_ops import array_to_image, image_to_array
from CS_Libs.ImageEditingLib.image_models import ChromaSettings
from CS_Libs.constants import MAX_COLOR_DISTANCE


def compute_key_distance(pixels: np.ndarray, key_rgb: Sequence[int]) -> np.ndarray:
    """
    Normalized distance of every pixel to the key color.

    Args:
        pixels: Float array of shape (..., 3) or (..., 4)
        key_rgb: Key color as (r, g, b)

    Returns:
        Float array of distances, 0 for the key color itself and about 1
        for the opposite corner of the RGB cube
    """
    diff = pixels[..., :3] - np.asarray(key_rgb[:3], dtype=np.float32)
    return np.sqrt(np.sum(diff * diff, axis=-1)) / MAX_COLOR_DISTANCE


def compute_alpha_matte(distance: np.ndarray, settings: ChromaSettings) -> np.ndarray:
    """
    Map key distances to alpha values in 0-255.

    The mapping is non-decreasing in distance. With ``smoothness == 0`` the
    ramp collapses to a hard step at ``similarity``.
    """
    similarity = float(settings.similarity)
    smoothness = max(0.0, float(settings.smoothness))

    alpha = np.full(distance.shape, 255.0, dtype=np.float32)
    alpha[distance < similarity] = 0.0

    if smoothness > 0:
        ramp = (distance >= similarity) & (distance < similarity + smoothness)
        alpha[ramp] = (distance[ramp] - similarity) / smoothness * 255.0

    return alpha


def suppress_spill(
    pixels: np.ndarray,
    distance: np.ndarray,
    alpha: np.ndarray,
    settings: ChromaSettings,
    channel: int = 1,
) -> np.ndarray:
    """
    Clamp key-colored spill on retained pixels near the key boundary.

    Only pixels with alpha > 0 and distance < ``settings.spill_limit`` are
    touched. The key channel is lowered to the mean of the other two
    channels when it exceeds that mean.

    Args:
        pixels: Float (H, W, 3+) array, modified in place
        distance: Key distances from compute_key_distance
        alpha: Alpha matte from compute_alpha_matte
        settings: Chroma settings
        channel: Index of the channel nearest the key hue

    Returns:
        The ``pixels`` array
    """
    others = [c for c in range(3) if c != channel]
    limit = (pixels[..., others[0]] + pixels[..., others[1]]) / 2.0
    spill = (alpha > 0) & (distance < settings.spill_limit) & (pixels[..., channel] > limit)
    pixels[..., channel] = np.where(spill, limit, pixels[..., channel])
    return pixels


def compute_matte(image: Any, settings: ChromaSettings) -> Tuple[np.ndarray, np.ndarray]:
    """
    Key an image into spill-corrected RGB and an alpha matte.

    Returns:
        Tuple of (pixels, alpha): float (H, W, 4) array with spill
        suppression applied, and the float (H, W) alpha matte
    """
    pixels = image_to_array(image).copy()
    key_rgb = settings.key_rgb()

    distance = compute_key_distance(pixels, key_rgb)
    alpha = compute_alpha_matte(distance, settings)

    # Without a ramp or spill band no retained pixel is inside the spill limit
    if settings.spill > 0 or settings.smoothness > 0:
        suppress_spill(pixels, distance, alpha, settings, dominant_channel(key_rgb))

    return pixels, alpha


def apply_chroma_key(image: Any, settings: ChromaSettings) -> Any:
    """
    Apply chroma keying and spill suppression to an image.

    Args:
        image: PIL Image (converted to RGBA)
        settings: ChromaSettings with key color and thresholds

    Returns:
        New RGBA PIL Image whose alpha channel is the computed matte

    Raises:
        TypeError: If image is not a PIL Image
    """
    pixels, alpha = compute_matte(image, settings)
    pixels[..., 3] = alpha
    return array_to_image(pixels)
