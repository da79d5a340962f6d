"""
ServicesLib - Collaborators at the edges of the pipeline

Modules:
    image_import: Decoding files, bytes, data URLs and arrays into rasters
    backdrop_service: Prompt-to-image backdrop generation
    export_encoder: PNG/JPEG export with an optional byte budget
"""

from CS_Libs.ServicesLib.image_import import (
    ImageDecodeError,
    coerce_raster,
    decode_data_url,
    decode_image_bytes,
    get_supported_image_formats,
    is_supported_format,
    load_image_file,
)
from CS_Libs.ServicesLib.backdrop_service import (
    BackdropRequestError,
    BackdropService,
    BackdropServiceError,
    GeminiBackdropService,
    NoImageCandidateError,
)
from CS_Libs.ServicesLib.export_encoder import (
    ExportResult,
    ExportSettings,
    ExportWriter,
    encode_for_export,
)

__all__ = [
    "ImageDecodeError",
    "coerce_raster",
    "decode_data_url",
    "decode_image_bytes",
    "get_supported_image_formats",
    "is_supported_format",
    "load_image_file",
    "BackdropRequestError",
    "BackdropService",
    "BackdropServiceError",
    "GeminiBackdropService",
    "NoImageCandidateError",
    "ExportResult",
    "ExportSettings",
    "ExportWriter",
    "encode_for_export",
]
