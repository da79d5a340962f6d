"""
Settings preset storage for Chroma Studio.

A preset captures a full RenderSettings (chroma, adjustments, transform) in
a small JSON file with the .cspreset extension:

    {
      "schema_version": 1,
      "name": "Studio green, warm",
      "created_at": "2026-01-31T12:00:00",
      "settings": {"chroma": {...}, "adjustments": {...}, "transform": {...}}
    }

Loading is tolerant: unreadable files, wrong types and unknown keys fall
back to defaults instead of raising, so an old or hand-edited preset never
blocks a session.

Functions:
    get_presets_dir: Get (and create) the Presets directory
    list_preset_files: List preset files in the Presets directory
    create_preset_file: Create a new preset file with a unique name
    load_preset_name: Load just the preset name from a file
    load_preset_data: Load the raw preset payload with defaults filled in
    load_preset: Load a preset as RenderSettings
    save_preset: Save RenderSettings to a preset file
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from CS_Libs.ImageEditingLib.image_models import RenderSettings
from CS_Libs.constants import (
    FIELD_CREATED_AT,
    FIELD_NAME,
    FIELD_SCHEMA_VERSION,
    FIELD_SETTINGS,
    FILENAME_REPLACEMENT_CHAR,
    PRESET_EXTENSION,
    PRESETS_DIR_NAME,
    SAFE_FILENAME_CHARS,
    SCHEMA_VERSION,
)

logger = logging.getLogger(__name__)


def _safe_filename(name: str) -> str:
    safe_name = "".join(
        c if c.isalnum() or c in SAFE_FILENAME_CHARS else FILENAME_REPLACEMENT_CHAR
        for c in name
    ).strip(FILENAME_REPLACEMENT_CHAR)
    return safe_name or "new_preset"


def _read_payload(preset_path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(Path(preset_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read preset {preset_path}: {e}")
        return {}
    return payload if isinstance(payload, dict) else {}


def get_presets_dir(base_dir: Path) -> Path:
    presets_dir = Path(base_dir) / PRESETS_DIR_NAME
    presets_dir.mkdir(parents=True, exist_ok=True)
    return presets_dir


def list_preset_files(base_dir: Path) -> List[Path]:
    return sorted(get_presets_dir(base_dir).glob(f"*{PRESET_EXTENSION}"))


def create_preset_file(
    base_dir: Path,
    preset_name: str,
    settings: Optional[RenderSettings] = None,
) -> Path:
    """
    Create a new preset file.

    The filename is derived from ``preset_name`` (unsafe characters replaced)
    and suffixed with a counter if a preset of that name already exists.

    Args:
        base_dir: Base directory containing the Presets folder
        preset_name: Human-readable name for the preset
        settings: Settings to store (defaults if None)

    Returns:
        Path to the created preset file
    """
    presets_dir = get_presets_dir(base_dir)
    safe_name = _safe_filename(preset_name)

    preset_path = presets_dir / f"{safe_name}{PRESET_EXTENSION}"
    counter = 1
    while preset_path.exists():
        preset_path = presets_dir / f"{safe_name}_{counter}{PRESET_EXTENSION}"
        counter += 1

    payload: Dict[str, Any] = {
        FIELD_SCHEMA_VERSION: SCHEMA_VERSION,
        FIELD_NAME: preset_name,
        FIELD_CREATED_AT: datetime.now().isoformat(timespec="seconds"),
        FIELD_SETTINGS: (settings or RenderSettings()).to_dict(),
    }
    preset_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info(f"Created preset '{preset_name}' at {preset_path}")
    return preset_path


def load_preset_name(preset_path: Path) -> str:
    """
    Load the preset name from a preset file.

    Returns:
        The preset name, or the filename stem if loading fails
    """
    preset_path = Path(preset_path)
    return str(_read_payload(preset_path).get(FIELD_NAME) or preset_path.stem)


def load_preset_data(preset_path: Path) -> Dict[str, Any]:
    preset_path = Path(preset_path)
    payload = _read_payload(preset_path)

    settings = payload.get(FIELD_SETTINGS)
    payload[FIELD_SETTINGS] = RenderSettings.from_dict(settings if isinstance(settings, dict) else {}).to_dict()
    payload.setdefault(FIELD_SCHEMA_VERSION, SCHEMA_VERSION)
    payload.setdefault(FIELD_NAME, preset_path.stem)
    payload.setdefault(FIELD_CREATED_AT, datetime.now().isoformat(timespec="seconds"))
    return payload


def load_preset(preset_path: Path) -> RenderSettings:
    """Load a preset as RenderSettings; invalid content yields defaults."""
    return RenderSettings.from_dict(load_preset_data(preset_path)[FIELD_SETTINGS])


def save_preset(preset_path: Path, settings: RenderSettings, name: Optional[str] = None) -> None:
    """
    Save settings into a preset file, keeping its existing name and
    creation date unless a new name is given.
    """
    preset_path = Path(preset_path)
    payload = load_preset_data(preset_path) if preset_path.exists() else {
        FIELD_NAME: preset_path.stem,
        FIELD_CREATED_AT: datetime.now().isoformat(timespec="seconds"),
    }
    if name:
        payload[FIELD_NAME] = name
    payload[FIELD_SCHEMA_VERSION] = SCHEMA_VERSION
    payload[FIELD_SETTINGS] = settings.to_dict()
    preset_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
