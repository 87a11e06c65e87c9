"""
File I/O for make2manage.

This module handles reading and writing of:
- Level files (authored order books, JSON or YAML)
- Session persistence (JSON save slots and autosave)
"""

from make2manage.io.level_io import (
    Level,
    LevelFormatError,
    level_to_dict,
    load_level,
    load_level_from_dict,
    normalize_scheduled_orders,
    write_level,
)
from make2manage.io.state_io import (
    LoadError,
    SavedSession,
    SaveError,
    SaveMetadata,
    autosave,
    delete_save,
    get_default_saves_dir,
    get_save_path,
    list_saves,
    load_autosave,
    load_session,
    load_session_from_path,
    save_session,
)

__all__ = [
    # Levels
    "Level",
    "LevelFormatError",
    "level_to_dict",
    "load_level",
    "load_level_from_dict",
    "normalize_scheduled_orders",
    "write_level",
    # Session I/O
    "SaveError",
    "LoadError",
    "SaveMetadata",
    "SavedSession",
    "save_session",
    "load_session",
    "load_session_from_path",
    "autosave",
    "load_autosave",
    "delete_save",
    "list_saves",
    "get_save_path",
    "get_default_saves_dir",
]
