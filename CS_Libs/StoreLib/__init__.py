"""
StoreLib - Settings preset storage

This module handles persistence of Chroma Studio settings presets,
including creating, listing, loading and saving preset files.
"""

from CS_Libs.StoreLib.preset_store import (
    create_preset_file,
    get_presets_dir,
    list_preset_files,
    load_preset,
    load_preset_data,
    load_preset_name,
    save_preset,
)

__all__ = [
    "create_preset_file",
    "get_presets_dir",
    "list_preset_files",
    "load_preset",
    "load_preset_data",
    "load_preset_name",
    "save_preset",
]
