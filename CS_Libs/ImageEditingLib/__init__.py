"""
ImageEditingLib - Core image editing functionality

This module provides the settings models and the per-stage filters of the
Chroma Studio compositing pipeline.
"""

from CS_Libs.ImageEditingLib.image_models import (
    ChromaSettings,
    CropRect,
    ImageAdjustments,
    ProcessingStatus,
    RenderSettings,
    TransformSettings,
)
from CS_Libs.ImageEditingLib.color_utils import (
    RgbColor,
    RgbaColor,
    hex_to_rgb,
    rgb_to_hex,
    color_distance,
    normalized_distance,
    luminance,
)
from CS_Libs.ImageEditingLib.image_editing_ops import composite_over
from CS_Libs.ImageEditingLib.chroma_key_filter import apply_chroma_key
from CS_Libs.ImageEditingLib.adjustment_filter import apply_adjustments
from CS_Libs.ImageEditingLib.transform_filter import apply_transform
from CS_Libs.ImageEditingLib.backdrop_filter import build_backdrop
from CS_Libs.ImageEditingLib.crop_filter import crop_box, resolve_viewport

__all__ = [
    "ChromaSettings",
    "CropRect",
    "ImageAdjustments",
    "ProcessingStatus",
    "RenderSettings",
    "TransformSettings",
    "RgbColor",
    "RgbaColor",
    "hex_to_rgb",
    "rgb_to_hex",
    "color_distance",
    "normalized_distance",
    "luminance",
    "composite_over",
    "apply_chroma_key",
    "apply_adjustments",
    "apply_transform",
    "build_backdrop",
    "crop_box",
    "resolve_viewport",
]
