"""
Export encoder for Chroma Studio.

Encodes the final composite as PNG or JPEG, optionally resampled, and with
JPEG optionally squeezed under a byte budget by re-encoding at decreasing
quality. ``ExportWriter`` then saves the bytes under a templated filename.

Supported filename tags (case-insensitive):
- {DATE} or {DATE:format} - Current date (default: YYYY-MM-DD)
- {TIME} or {TIME:format} - Current time (default: HH-MM-SS)
- {DATETIME} or {DATETIME:format} - Combined date and time
- {TIMESTAMP} - Milliseconds since the Unix epoch
- {COUNTER} or {COUNTER:width} - Per-writer save counter (0-pad width)

Classes:
    ExportSettings: Format, quality, byte budget and scale
    ExportResult: Encoded bytes plus what it took to produce them
    ExportWriter: Filename templating and file output

Functions:
    encode_for_export: Encode an image according to ExportSettings
"""

import io
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from PIL import Image

from CS_Libs.ImageEditingLib.image_editing_ops import ensure_rgba
from CS_Libs.constants import (
    DEFAULT_EXPORT_FILENAME,
    DEFAULT_EXPORT_QUALITY,
    EXPORT_FORMAT_JPEG,
    EXPORT_FORMAT_PNG,
    EXPORT_MAX_ATTEMPTS,
    EXPORT_MAX_SCALE,
    EXPORT_MIN_SCALE,
    EXPORT_QUALITY_FLOOR,
    EXPORT_QUALITY_STEP,
    JPEG_FLATTEN_COLOR,
)

logger = logging.getLogger(__name__)

_FORMAT_ALIASES = {"jpg": EXPORT_FORMAT_JPEG}
_PILLOW_FORMATS = {EXPORT_FORMAT_PNG: "PNG", EXPORT_FORMAT_JPEG: "JPEG"}
_FORMAT_EXTENSIONS = {EXPORT_FORMAT_PNG: ".png", EXPORT_FORMAT_JPEG: ".jpg"}


@dataclass
class ExportSettings:
    """Export configuration.

    Attributes:
        format: 'png' or 'jpeg' ('jpg' is accepted)
        quality: JPEG quality in 0-1 (ignored for PNG)
        max_size_kb: Optional byte budget in kilobytes (JPEG only)
        scale: Resample factor applied before encoding (0.1-3.0)
    """
    format: str = EXPORT_FORMAT_PNG
    quality: float = DEFAULT_EXPORT_QUALITY
    max_size_kb: Optional[float] = None
    scale: float = 1.0

    def __post_init__(self):
        """Normalize the format and validate ranges."""
        fmt = str(self.format).lower()
        self.format = _FORMAT_ALIASES.get(fmt, fmt)
        if self.format not in _PILLOW_FORMATS:
            raise ValueError(
                f"Unsupported export format: {self.format}. "
                f"Valid options: {EXPORT_FORMAT_PNG}, {EXPORT_FORMAT_JPEG}"
            )
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be in [0, 1], got {self.quality}")
        if not EXPORT_MIN_SCALE <= self.scale <= EXPORT_MAX_SCALE:
            raise ValueError(
                f"scale must be in [{EXPORT_MIN_SCALE}, {EXPORT_MAX_SCALE}], got {self.scale}"
            )
        if self.max_size_kb is not None and self.max_size_kb <= 0:
            raise ValueError(f"max_size_kb must be positive, got {self.max_size_kb}")

    @property
    def extension(self) -> str:
        return _FORMAT_EXTENSIONS[self.format]

    @property
    def max_bytes(self) -> Optional[int]:
        if self.max_size_kb is None:
            return None
        return int(self.max_size_kb * 1024)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportSettings":
        """Create from dictionary."""
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


@dataclass(frozen=True)
class ExportResult:
    """Outcome of an export encode.

    Attributes:
        data: Encoded file bytes
        byte_size: len(data)
        quality: Quality of the final attempt (0-1)
        attempts: Number of encodes performed
        format: 'png' or 'jpeg'
        size: Pixel (width, height) of the encoded image
    """
    data: bytes
    byte_size: int
    quality: float
    attempts: int
    format: str
    size: Tuple[int, int]

    def within_budget(self, settings: ExportSettings) -> bool:
        budget = settings.max_bytes
        return budget is None or self.byte_size <= budget


def _scaled(image: Any, scale: float) -> Any:
    if scale == 1.0:
        return image
    width = max(1, int(round(image.size[0] * scale)))
    height = max(1, int(round(image.size[1] * scale)))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def _flatten_for_jpeg(image: Any) -> Any:
    canvas = Image.new("RGBA", image.size, JPEG_FLATTEN_COLOR + (255,))
    return Image.alpha_composite(canvas, image).convert("RGB")


def _encode(image: Any, fmt: str, quality: float) -> bytes:
    buffer = io.BytesIO()
    if fmt == EXPORT_FORMAT_JPEG:
        image.save(buffer, format="JPEG", quality=max(1, int(round(quality * 100))))
    else:
        image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def encode_for_export(image: Any, settings: Optional[ExportSettings] = None) -> ExportResult:
    """
    Encode an image for export.

    PNG is lossless and encoded once. JPEG is encoded at ``settings.quality``
    and, while a byte budget is set and exceeded, re-encoded at quality
    lowered by 0.1 per attempt down to a floor of 0.1, for at most 10
    attempts. The last attempt is returned even if still over budget.

    Args:
        image: RGBA PIL Image (the rendered composite)
        settings: ExportSettings (PNG at scale 1 if None)

    Returns:
        ExportResult

    Raises:
        TypeError: If image is not a PIL Image
    """
    settings = settings or ExportSettings()
    image = _scaled(ensure_rgba(image), settings.scale)

    if settings.format == EXPORT_FORMAT_PNG:
        data = _encode(image, EXPORT_FORMAT_PNG, settings.quality)
        return ExportResult(data, len(data), settings.quality, 1, settings.format, image.size)

    flattened = _flatten_for_jpeg(image)
    budget = settings.max_bytes
    quality = settings.quality
    data = _encode(flattened, EXPORT_FORMAT_JPEG, quality)
    attempts = 1

    while (
        budget is not None
        and len(data) > budget
        and attempts < EXPORT_MAX_ATTEMPTS
        and quality > EXPORT_QUALITY_FLOOR
    ):
        quality = max(EXPORT_QUALITY_FLOOR, round(quality - EXPORT_QUALITY_STEP, 4))
        data = _encode(flattened, EXPORT_FORMAT_JPEG, quality)
        attempts += 1
        logger.debug(f"JPEG attempt {attempts} at quality {quality:.2f}: {len(data)} bytes")

    if budget is not None and len(data) > budget:
        logger.warning(
            f"Export still over budget after {attempts} attempts: "
            f"{len(data)} > {budget} bytes"
        )
    return ExportResult(data, len(data), quality, attempts, settings.format, image.size)


class ExportWriter:
    """Resolves templated output filenames and writes encoded exports."""

    TAG_PATTERN = r"\{(DATETIME|DATE|TIME|TIMESTAMP|COUNTER)(?::([^\}]*))?\}"

    DEFAULT_DATE_FORMAT = "%Y-%m-%d"
    DEFAULT_TIME_FORMAT = "%H-%M-%S"
    DEFAULT_DATETIME_FORMAT = "%Y-%m-%d_%H-%M-%S"

    def __init__(
        self,
        output_path: str = DEFAULT_EXPORT_FILENAME,
        overwrite: bool = False,
        create_directories: bool = True,
        base_directory: Optional[str] = None,
    ):
        self.output_path = output_path
        self.overwrite = overwrite
        self.create_directories = create_directories
        self.counter = 0
        self._base_dir = None
        if base_directory:
            base_path = Path(base_directory)
            if not base_path.is_absolute():
                raise ValueError(f"base_directory must be an absolute path: {base_directory}")
            self._base_dir = base_path.resolve()

    def _substitute(self, text: str, now: datetime) -> str:
        def replacer(match):
            tag = match.group(1).upper()
            arg = match.group(2)
            if tag == "TIMESTAMP":
                return str(int(now.timestamp() * 1000))
            if tag == "COUNTER":
                try:
                    width = int(arg or "0")
                except ValueError:
                    width = 0
                return str(self.counter).zfill(width)
            default = {
                "DATE": self.DEFAULT_DATE_FORMAT,
                "TIME": self.DEFAULT_TIME_FORMAT,
                "DATETIME": self.DEFAULT_DATETIME_FORMAT,
            }[tag]
            fmt = arg or default
            try:
                return now.strftime(fmt)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid format string '{fmt}' in {{{tag}}} tag: {str(e)}")

        return re.sub(self.TAG_PATTERN, replacer, text, flags=re.IGNORECASE)

    def resolve_filename(self, extension: Optional[str] = None, now: Optional[datetime] = None) -> Path:
        """
        Resolve the output filename with tag substitution and path validation.

        Args:
            extension: Appended when the resolved name has no suffix
            now: Time used for date tags (current time if None)

        Returns:
            Absolute Path of the output file

        Raises:
            ValueError: If the path contains '..' or leaves base_directory
        """
        path_str = self._substitute(self.output_path, now or datetime.now())
        path = Path(path_str)
        if any(part == ".." for part in path.parts):
            raise ValueError(f"Path traversal detected: output_path contains '..': {path_str}")
        if extension and not path.suffix:
            path = path.with_name(path.name + extension)

        if path.is_absolute():
            resolved = path.resolve()
        elif self._base_dir:
            resolved = (self._base_dir / path).resolve()
        else:
            resolved = path.resolve()

        if self._base_dir:
            try:
                resolved.relative_to(self._base_dir)
            except ValueError:
                raise ValueError(
                    f"Security: output_path '{path_str}' resolves to '{resolved}' "
                    f"which is outside the allowed base directory '{self._base_dir}'"
                )
        return resolved

    def write(self, result: ExportResult) -> Path:
        """
        Write an encoded export to disk.

        Returns:
            Path the bytes were written to

        Raises:
            ValueError: If the file exists and overwrite is False
            OSError: If the file cannot be written
        """
        output_file = self.resolve_filename(extension=_FORMAT_EXTENSIONS.get(result.format))

        if self.create_directories:
            output_file.parent.mkdir(parents=True, exist_ok=True)

        if output_file.exists() and not self.overwrite:
            raise ValueError(
                f"Output file already exists: {output_file}. "
                f"Set overwrite=True to replace."
            )

        try:
            output_file.write_bytes(result.data)
        except OSError as e:
            raise OSError(f"Failed to write export to {output_file}: {str(e)}") from e

        self.counter += 1
        logger.info(f"Exported {result.format.upper()} ({result.byte_size} bytes) to {output_file}")
        return output_file
