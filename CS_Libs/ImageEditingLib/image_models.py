"""
Settings data models for Chroma Studio.

This module defines the settings records consumed by the compositing
pipeline. Every record is a frozen dataclass: the session replaces a record
wholesale (via ``dataclasses.replace``) on each user interaction instead of
mutating it in place.

Classes:
    ChromaSettings: Key color and matte thresholds
    ImageAdjustments: Tone and color adjustment controls
    CropRect: Normalized crop rectangle
    TransformSettings: Perspective, rotate/scale/pan and crop controls
    RenderSettings: Bundle of the three settings records above
    ProcessingStatus: Session status reported to the caller
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Tuple

from CS_Libs.ImageEditingLib.color_utils import RgbColor, hex_to_rgb
from CS_Libs.constants import (
    DEFAULT_KEY_COLOR,
    DEFAULT_SIMILARITY,
    DEFAULT_SMOOTHNESS,
    DEFAULT_SPILL,
    MIN_CROP_SIZE,
)

# Field names used by the browser front-end this pipeline was built for
_CAMEL_CASE_ALIASES = {
    "keyColor": "key_color",
    "blackPoint": "black_point",
    "panX": "pan_x",
    "panY": "pan_y",
}


def _normalize_keys(data: Dict[str, Any], cls: type) -> Dict[str, Any]:
    """Map camelCase aliases and drop keys the dataclass does not know."""
    known = {f.name for f in fields(cls)}
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        key = _CAMEL_CASE_ALIASES.get(key, key)
        if key in known:
            normalized[key] = value
    return normalized


def _float_fields(data: Dict[str, Any], cls: type) -> Dict[str, Any]:
    normalized = _normalize_keys(data, cls)
    result: Dict[str, Any] = {}
    for key, value in normalized.items():
        try:
            result[key] = float(value)
        except (TypeError, ValueError):
            continue
    return result


class ProcessingStatus(str, Enum):
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    COMPRESSING = "COMPRESSING"
    GENERATING_BG = "GENERATING_BG"
    DONE = "DONE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ChromaSettings:
    """Chroma key settings.

    Attributes:
        similarity: Normalized distance below which pixels are keyed out (0-1)
        smoothness: Width of the linear alpha ramp above similarity (0-0.5)
        spill: Extra distance beyond the ramp where spill is suppressed (0-0.5)
        key_color: Hex color of the screen (e.g. '#00b140')
    """
    similarity: float = DEFAULT_SIMILARITY
    smoothness: float = DEFAULT_SMOOTHNESS
    spill: float = DEFAULT_SPILL
    key_color: str = DEFAULT_KEY_COLOR

    @property
    def alpha_ramp_limit(self) -> float:
        return self.similarity + max(0.0, self.smoothness)

    @property
    def spill_limit(self) -> float:
        return self.alpha_ramp_limit + max(0.0, self.spill)

    def key_rgb(self) -> RgbColor:
        """Get the key color as an RGB tuple."""
        return hex_to_rgb(self.key_color)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChromaSettings":
        """Create from dictionary."""
        normalized = _normalize_keys(data, cls)
        values: Dict[str, Any] = {}
        for key in ("similarity", "smoothness", "spill"):
            if key in normalized:
                try:
                    values[key] = float(normalized[key])
                except (TypeError, ValueError):
                    pass
        if isinstance(normalized.get("key_color"), str):
            values["key_color"] = normalized["key_color"]
        return cls(**values)


@dataclass(frozen=True)
class ImageAdjustments:
    """Tone and color adjustments.

    Every control defaults to 0, which leaves the image untouched.
    All controls are in -100..100 except sharpness, which is 0..100.
    """
    exposure: float = 0.0
    brilliance: float = 0.0
    highlights: float = 0.0
    shadows: float = 0.0
    contrast: float = 0.0
    brightness: float = 0.0
    black_point: float = 0.0
    saturation: float = 0.0
    warmth: float = 0.0
    tint: float = 0.0
    sharpness: float = 0.0

    def is_identity(self) -> bool:
        return all(getattr(self, f.name) == 0 for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageAdjustments":
        """Create from dictionary."""
        return cls(**_float_fields(data, cls))


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle normalized to the 0-1 range of the canvas."""
    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0

    def is_full_frame(self) -> bool:
        return self.x == 0 and self.y == 0 and self.width == 1 and self.height == 1

    def clamped(self, min_size: float = MIN_CROP_SIZE) -> "CropRect":
        """
        Clamp to the editor's rules: at least ``min_size`` per side and
        fully contained in the unit square.

        Args:
            min_size: Minimum normalized width and height

        Returns:
            A new CropRect satisfying x+width <= 1 and y+height <= 1
        """
        width = min(1.0, max(min_size, self.width))
        height = min(1.0, max(min_size, self.height))
        x = min(max(0.0, self.x), 1.0 - width)
        y = min(max(0.0, self.y), 1.0 - height)
        return CropRect(x=x, y=y, width=width, height=height)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CropRect":
        """Create from dictionary."""
        return cls(**_float_fields(data, cls))


@dataclass(frozen=True)
class TransformSettings:
    """Geometric transform settings.

    Attributes:
        rotate: Rotation in degrees (clockwise on screen)
        vertical: Vertical perspective tilt (-100..100)
        horizontal: Horizontal perspective tilt (-100..100)
        scale: Uniform scale factor (> 0)
        pan_x: Horizontal offset in percent of canvas width
        pan_y: Vertical offset in percent of canvas height
        crop: Normalized crop rectangle applied after compositing
    """
    rotate: float = 0.0
    vertical: float = 0.0
    horizontal: float = 0.0
    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    crop: CropRect = field(default_factory=CropRect)

    def has_perspective(self) -> bool:
        return self.vertical != 0 or self.horizontal != 0

    def has_affine(self) -> bool:
        return (
            self.rotate != 0
            or self.scale != 1
            or self.pan_x != 0
            or self.pan_y != 0
        )

    def is_identity(self) -> bool:
        """True when the transform leaves the layer untouched (crop ignored)."""
        return not self.has_perspective() and not self.has_affine()

    def geometry_key(self) -> Tuple[float, ...]:
        """Values that affect the transform stage (everything except crop)."""
        return (self.rotate, self.vertical, self.horizontal, self.scale, self.pan_x, self.pan_y)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransformSettings":
        """Create from dictionary."""
        crop_data = data.get("crop")
        values = _float_fields({k: v for k, v in data.items() if k != "crop"}, cls)
        if isinstance(crop_data, dict):
            values["crop"] = CropRect.from_dict(crop_data)
        return cls(**values)


@dataclass(frozen=True)
class RenderSettings:
    """All settings that drive one pipeline run."""
    chroma: ChromaSettings = field(default_factory=ChromaSettings)
    adjustments: ImageAdjustments = field(default_factory=ImageAdjustments)
    transform: TransformSettings = field(default_factory=TransformSettings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "chroma": self.chroma.to_dict(),
            "adjustments": self.adjustments.to_dict(),
            "transform": self.transform.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderSettings":
        """Create from dictionary, falling back to defaults for bad sections."""
        chroma = data.get("chroma")
        adjustments = data.get("adjustments", data.get("adjust"))
        transform = data.get("transform")
        return cls(
            chroma=ChromaSettings.from_dict(chroma) if isinstance(chroma, dict) else ChromaSettings(),
            adjustments=(
                ImageAdjustments.from_dict(adjustments)
                if isinstance(adjustments, dict)
                else ImageAdjustments()
            ),
            transform=(
                TransformSettings.from_dict(transform)
                if isinstance(transform, dict)
                else TransformSettings()
            ),
        )
