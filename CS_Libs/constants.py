"""
Constants and configuration values for Chroma Studio.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the compositing pipeline.
"""

# Chroma key defaults
DEFAULT_KEY_COLOR = "#00b140"
DEFAULT_SIMILARITY = 0.35
DEFAULT_SMOOTHNESS = 0.1
DEFAULT_SPILL = 0.1
FALLBACK_KEY_RGB = (0, 255, 0)

# Largest possible RGB euclidean distance, sqrt(3 * 255^2)
MAX_COLOR_DISTANCE = 441.67

# Rec.601 luma coefficients
LUMA_COEFF_R = 0.299
LUMA_COEFF_G = 0.587
LUMA_COEFF_B = 0.114
MID_GRAY = 128.0

# Adjustment scaling
EXPOSURE_STOP_DIVISOR = 100.0
CONTRAST_INPUT_SCALE = 2.55
SHARPEN_BLUR_RADIUS = 2.0
SHARPEN_AMOUNT_DIVISOR = 50.0
BRILLIANCE_STRENGTH = 0.5
TONAL_RANGE_STRENGTH = 64.0

# Transform limits
PERSPECTIVE_DIVISOR = 200.0
MIN_SCALE = 0.01
MIN_CROP_SIZE = 0.05

# Backdrop fallback
BACKDROP_FALLBACK_CHECKERBOARD = "checkerboard"
BACKDROP_FALLBACK_SOLID = "solid"
STUDIO_BACKGROUND_COLOR = (9, 9, 11, 255)
CHECKERBOARD_TILE_SIZE = 16
CHECKERBOARD_LIGHT = (204, 204, 204, 255)
CHECKERBOARD_DARK = (153, 153, 153, 255)

# Export
EXPORT_FORMAT_PNG = "png"
EXPORT_FORMAT_JPEG = "jpeg"
DEFAULT_EXPORT_QUALITY = 0.92
EXPORT_QUALITY_STEP = 0.1
EXPORT_QUALITY_FLOOR = 0.1
EXPORT_MAX_ATTEMPTS = 10
EXPORT_MIN_SCALE = 0.1
EXPORT_MAX_SCALE = 3.0
JPEG_FLATTEN_COLOR = (0, 0, 0)
DEFAULT_EXPORT_FILENAME = "composite-{TIMESTAMP}.png"

# Backdrop generation service
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"
GEMINI_API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")
BACKDROP_REQUEST_TIMEOUT = 120

# Preset files
PRESETS_DIR_NAME = "Presets"
PRESET_EXTENSION = ".cspreset"
SCHEMA_VERSION = 1

# Safe filename characters
SAFE_FILENAME_CHARS = "-_"
FILENAME_REPLACEMENT_CHAR = "_"

# Preset field names
FIELD_SCHEMA_VERSION = "schema_version"
FIELD_NAME = "name"
FIELD_CREATED_AT = "created_at"
FIELD_SETTINGS = "settings"

# Supported file formats
SUPPORTED_STANDARD_IMAGES = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".webp"}
