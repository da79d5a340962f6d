"""
Color model utilities for Chroma Studio.

Functions:
    hex_to_rgb: Parse a '#rrggbb' string into an RGB tuple
    rgb_to_hex: Format an RGB tuple as '#rrggbb'
    color_distance: Euclidean distance between two RGB colors
    normalized_distance: Color distance scaled to 0-1
    luminance: Rec.601 luma of an RGB color or array of colors
    dominant_channel: Index of the strongest channel of a color
"""

import math
import re
from typing import Any, Sequence, Tuple

from CS_Libs.constants import (
    FALLBACK_KEY_RGB,
    LUMA_COEFF_B,
    LUMA_COEFF_G,
    LUMA_COEFF_R,
    MAX_COLOR_DISTANCE,
)

RgbColor = Tuple[int, int, int]
RgbaColor = Tuple[int, int, int, int]

HEX_COLOR_PATTERN = re.compile(r'^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$', re.IGNORECASE)


def hex_to_rgb(hex_color: str) -> RgbColor:
    """
    Parse a hex color string.

    Malformed input falls back to pure green, so a half-typed value in a
    color field never breaks the key.

    Args:
        hex_color: Color like '#00b140' or '00B140'

    Returns:
        (r, g, b) tuple of ints in 0-255
    """
    match = HEX_COLOR_PATTERN.match(str(hex_color).strip())
    if match is None:
        return FALLBACK_KEY_RGB
    return tuple(int(group, 16) for group in match.groups())


def rgb_to_hex(color: Sequence[int]) -> str:
    r, g, b = (int(max(0, min(255, c))) for c in color[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def color_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two RGB colors (alpha ignored)."""
    return math.sqrt(sum((float(a[i]) - float(b[i])) ** 2 for i in range(3)))


def normalized_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Color distance divided by the largest possible RGB distance."""
    return color_distance(a, b) / MAX_COLOR_DISTANCE


def luminance(rgb: Any) -> Any:
    """
    Rec.601 luma (0.299R + 0.587G + 0.114B).

    Works on a single color tuple or on a numpy array whose last axis
    holds at least the R, G, B channels.
    """
    if hasattr(rgb, "shape"):
        return LUMA_COEFF_R * rgb[..., 0] + LUMA_COEFF_G * rgb[..., 1] + LUMA_COEFF_B * rgb[..., 2]
    return LUMA_COEFF_R * rgb[0] + LUMA_COEFF_G * rgb[1] + LUMA_COEFF_B * rgb[2]


def dominant_channel(color: Sequence[int]) -> int:
    """Index (0=R, 1=G, 2=B) of the strongest channel; ties favor green."""
    r, g, b = color[:3]
    if g >= r and g >= b:
        return 1
    if b >= r:
        return 2
    return 0
