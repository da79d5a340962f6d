"""
Backdrop Compositor.

Builds the opaque, canvas-sized layer the keyed foreground is composited
onto. A supplied background is aspect-filled (cover): scaled until it covers
the whole canvas, with the overflow cropped evenly from both sides. Without
a background the canvas gets a checkerboard or the flat studio color so the
keying result stays inspectable.
"""

from typing import Any, Optional, Tuple

from PIL import Image, ImageDraw

from CS_Libs.ImageEditingLib.image_editing_ops import ensure_rgba
from CS_Libs.constants import (
    BACKDROP_FALLBACK_CHECKERBOARD,
    BACKDROP_FALLBACK_SOLID,
    CHECKERBOARD_DARK,
    CHECKERBOARD_LIGHT,
    CHECKERBOARD_TILE_SIZE,
    STUDIO_BACKGROUND_COLOR,
)


def aspect_fill_box(
    source_size: Tuple[int, int],
    canvas_size: Tuple[int, int],
) -> Tuple[float, float, float, float]:
    """
    Placement of a source image that covers the canvas without letterboxing.

    Args:
        source_size: Background (width, height)
        canvas_size: Canvas (width, height)

    Returns:
        (offset_x, offset_y, draw_width, draw_height) in canvas pixels;
        offsets are <= 0 on the overflowing axis
    """
    src_w, src_h = source_size
    canvas_w, canvas_h = canvas_size
    if src_w / src_h > canvas_w / canvas_h:
        draw_h = float(canvas_h)
        draw_w = src_w * (canvas_h / src_h)
        return ((canvas_w - draw_w) / 2.0, 0.0, draw_w, draw_h)
    draw_w = float(canvas_w)
    draw_h = src_h * (canvas_w / src_w)
    return (0.0, (canvas_h - draw_h) / 2.0, draw_w, draw_h)


def make_checkerboard(
    size: Tuple[int, int],
    tile_size: int = CHECKERBOARD_TILE_SIZE,
    light: Tuple[int, int, int, int] = CHECKERBOARD_LIGHT,
    dark: Tuple[int, int, int, int] = CHECKERBOARD_DARK,
) -> Any:
    """Two-tone checkerboard, light tile in the top-left corner."""
    tile_size = max(1, int(tile_size))
    board = Image.new("RGBA", size, light)
    draw = ImageDraw.Draw(board)
    width, height = size
    for top in range(0, height, tile_size):
        first_dark = tile_size if (top // tile_size) % 2 == 0 else 0
        for left in range(first_dark, width, tile_size * 2):
            draw.rectangle(
                [left, top, left + tile_size - 1, top + tile_size - 1],
                fill=dark,
            )
    return board


def build_backdrop(
    size: Tuple[int, int],
    background: Optional[Any] = None,
    fallback: str = BACKDROP_FALLBACK_CHECKERBOARD,
) -> Any:
    """
    Build the opaque backdrop layer for a canvas.

    Args:
        size: Canvas (width, height), normally the foreground's size
        background: Optional PIL Image to aspect-fill into the canvas
        fallback: 'checkerboard' or 'solid' when no background is supplied

    Returns:
        New opaque RGBA PIL Image of the requested size

    Raises:
        ValueError: If fallback is unknown
        TypeError: If background is not a PIL Image
    """
    width, height = max(1, int(size[0])), max(1, int(size[1]))

    if background is not None:
        background = ensure_rgba(background)
        offset_x, offset_y, draw_w, _ = aspect_fill_box(background.size, (width, height))
        # Canvas region expressed in background pixels
        src_w, src_h = background.size
        ratio = src_w / draw_w
        left = max(0.0, -offset_x * ratio)
        top = max(0.0, -offset_y * ratio)
        # Clamp away float drift; Pillow rejects boxes past the image edge
        right = min(float(src_w), left + width * ratio)
        bottom = min(float(src_h), top + height * ratio)
        filled = background.resize(
            (width, height),
            Image.Resampling.BILINEAR,
            box=(left, top, right, bottom),
        )
        # Transparent regions of the background must not leak through
        opaque = Image.new("RGBA", (width, height), STUDIO_BACKGROUND_COLOR)
        return Image.alpha_composite(opaque, filled)

    if fallback == BACKDROP_FALLBACK_CHECKERBOARD:
        return make_checkerboard((width, height))
    if fallback == BACKDROP_FALLBACK_SOLID:
        return Image.new("RGBA", (width, height), STUDIO_BACKGROUND_COLOR)

    raise ValueError(
        f"Unknown backdrop fallback: {fallback}. "
        f"Valid options: {BACKDROP_FALLBACK_CHECKERBOARD}, {BACKDROP_FALLBACK_SOLID}"
    )
