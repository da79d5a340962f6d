"""
Image acquisition for Chroma Studio.

Turns whatever the caller has (a file on disk, encoded bytes, a ``data:``
URL or an in-memory raster) into an RGBA Pillow image the pipeline can
consume. Animated formats contribute their first frame only.

Functions:
    get_supported_image_formats: Sorted list of importable extensions
    is_supported_format: Check a path's extension
    load_image_file: Load and decode an image file
    decode_image_bytes: Decode an encoded image held in memory
    decode_data_url: Decode a base64 ``data:image/...`` URL
    coerce_raster: Convert a PIL Image or numpy array to RGBA
"""

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Any, List

import numpy as np
from PIL import Image

from CS_Libs.constants import SUPPORTED_STANDARD_IMAGES

logger = logging.getLogger(__name__)


class ImageDecodeError(IOError):
    """Raised when image data cannot be read or decoded."""


def get_supported_image_formats() -> List[str]:
    """
    Get list of supported standard image formats.

    Returns:
        List of file extensions (e.g., ['.bmp', '.gif', ...])
    """
    return sorted(SUPPORTED_STANDARD_IMAGES)


def is_supported_format(file_path: Path) -> bool:
    return Path(file_path).suffix.lower() in SUPPORTED_STANDARD_IMAGES


def _open_first_frame(source: Any, label: str) -> Any:
    try:
        img = Image.open(source)
        if getattr(img, "n_frames", 1) > 1:
            img.seek(0)
        # Image.open is lazy; force the decode so corrupt data fails here
        img.load()
        return img.convert("RGBA")
    except Exception as e:
        raise ImageDecodeError(f"Failed to decode image from {label}: {str(e)}") from e


def load_image_file(file_path: Path) -> Any:
    """
    Load an image file from disk.

    Args:
        file_path: Path to a PNG, JPEG, BMP, GIF, TIFF or WebP file

    Returns:
        RGBA PIL Image

    Raises:
        FileNotFoundError: If the file does not exist
        ImageDecodeError: If the extension is unsupported or decoding fails
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Image file not found: {file_path}")
    if not file_path.is_file():
        raise ImageDecodeError(f"Path is not a file: {file_path}")
    if not is_supported_format(file_path):
        raise ImageDecodeError(
            f"Unsupported image format: {file_path.suffix or '(none)'}. "
            f"Supported: {', '.join(get_supported_image_formats())}"
        )

    image = _open_first_frame(file_path, str(file_path))
    logger.debug(f"Loaded {file_path.name} ({image.size[0]}x{image.size[1]})")
    return image


def decode_image_bytes(data: bytes) -> Any:
    """
    Decode an encoded image held in memory.

    Raises:
        ImageDecodeError: If the data is empty or cannot be decoded
    """
    if not data:
        raise ImageDecodeError("No image data")
    return _open_first_frame(io.BytesIO(data), f"{len(data)} bytes")


def decode_data_url(url: str) -> Any:
    """
    Decode a ``data:image/<type>;base64,<payload>`` URL.

    Raises:
        ImageDecodeError: If the URL is not a base64 image data URL or the
                          payload cannot be decoded
    """
    if not isinstance(url, str) or not url.startswith("data:"):
        raise ImageDecodeError("Not a data URL")

    header, sep, payload = url.partition(",")
    if not sep:
        raise ImageDecodeError("Malformed data URL: missing ',' separator")
    media = header[len("data:"):]
    if not media.startswith("image/") or not media.endswith(";base64"):
        raise ImageDecodeError(f"Unsupported data URL type: {media or '(empty)'}")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 payload: {str(e)}") from e
    return decode_image_bytes(data)


def coerce_raster(raster: Any) -> Any:
    """
    Convert an in-memory raster to an RGBA PIL Image.

    Accepts PIL Images in any mode and numpy arrays shaped (H, W),
    (H, W, 3) or (H, W, 4). Array values are clamped to 0-255.

    Returns:
        New RGBA PIL Image (never the caller's object)

    Raises:
        TypeError: If raster is neither a PIL Image nor a numpy array
        ValueError: If an array has an unsupported shape
    """
    if isinstance(raster, Image.Image):
        return raster.convert("RGBA") if raster.mode != "RGBA" else raster.copy()

    if not isinstance(raster, np.ndarray):
        raise TypeError(f"Expected PIL Image or numpy array, got {type(raster)}")

    pixels = np.clip(np.rint(raster.astype(np.float32)), 0, 255).astype(np.uint8)
    if pixels.ndim == 2:
        pixels = np.stack([pixels, pixels, pixels], axis=-1)
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4) or 0 in pixels.shape[:2]:
        raise ValueError(f"Unsupported raster shape: {raster.shape}")
    if pixels.shape[2] == 3:
        opaque = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
        pixels = np.concatenate([pixels, opaque], axis=-1)
    return Image.fromarray(np.ascontiguousarray(pixels))
