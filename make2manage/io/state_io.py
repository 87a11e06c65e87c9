"""
Session persistence for make2manage.

Whole ``GameState`` snapshots are saved to numbered JSON slots or to a
dedicated autosave file in the user's data directory. Files are written
to a temporary file first and then moved into place, so an interrupted
save never leaves a truncated slot behind.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from make2manage import __version__
from make2manage.config.schema import EngineConfig
from make2manage.models.game import GameState, SessionStatus
from make2manage.models.orders import MS_PER_MINUTE

AUTOSAVE_SLOT = 0


class SaveMetadata(BaseModel):
    """Summary of a saved session, readable without restoring it."""

    save_name: str = Field(description="Display name for this save")
    save_slot: int = Field(ge=0, description="Save slot number (0 = autosave)")
    session_id: str = Field(description="Session identifier")
    status: SessionStatus = Field(description="Session status when saved")
    elapsed_minutes: float = Field(ge=0, description="Simulated minutes played")
    score: float = Field(default=0.0, description="Score when saved")
    orders_completed: int = Field(default=0, ge=0)
    created_at: str = Field(description="ISO timestamp when save was created")
    updated_at: str = Field(description="ISO timestamp when save was last updated")
    version: str = Field(default=__version__, description="make2manage version")


class SavedSession(BaseModel):
    """Complete saved session including metadata and state."""

    metadata: SaveMetadata
    game_state: GameState
    config: Optional[EngineConfig] = Field(
        default=None, description="Engine configuration (uses defaults if None)"
    )


class SaveError(Exception):
    """Exception raised when saving fails."""

    pass


class LoadError(Exception):
    """Exception raised when loading fails."""

    pass


def get_default_saves_dir() -> Path:
    """Get the default directory for save files.

    Returns:
        Path to saves directory (creates if not exists)
    """
    if os.name == "posix":
        xdg_data = os.environ.get("XDG_DATA_HOME", "")
        base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
    else:
        app_data = os.environ.get("APPDATA", "")
        base = Path(app_data) if app_data else Path.home()

    saves_dir = base / "make2manage" / "saves"
    saves_dir.mkdir(parents=True, exist_ok=True)
    return saves_dir


def get_save_path(slot: int, saves_dir: Optional[Path] = None) -> Path:
    """File path of a numbered slot (1-based), or of the autosave for slot 0."""
    if saves_dir is None:
        saves_dir = get_default_saves_dir()
    if slot == AUTOSAVE_SLOT:
        return saves_dir / "autosave.json"
    return saves_dir / f"save_{slot:02d}.json"


def save_session(
    game_state: GameState,
    slot: int,
    save_name: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    saves_dir: Optional[Path] = None,
) -> Path:
    """Save a session to a slot.

    Args:
        game_state: State to save
        slot: Save slot number (1-based)
        save_name: Display name for this save (auto-generated if None)
        config: Engine configuration (saved with state)
        saves_dir: Directory for saves (uses default if None)

    Returns:
        Path to saved file

    Raises:
        SaveError: If saving fails
    """
    if slot < 1:
        raise SaveError("Save slot must be >= 1")
    minutes = game_state.now_ms / MS_PER_MINUTE
    if save_name is None:
        save_name = f"{game_state.session.session_id} - {minutes:.1f} min"
    return _write_slot(game_state, slot, save_name, config, saves_dir)


def autosave(
    game_state: GameState,
    config: Optional[EngineConfig] = None,
    saves_dir: Optional[Path] = None,
) -> Path:
    """Save to the dedicated autosave file, separate from manual saves.

    Raises:
        SaveError: If saving fails
    """
    minutes = game_state.now_ms / MS_PER_MINUTE
    return _write_slot(
        game_state, AUTOSAVE_SLOT, f"Autosave - {minutes:.1f} min", config, saves_dir
    )


def _write_slot(
    game_state: GameState,
    slot: int,
    save_name: str,
    config: Optional[EngineConfig],
    saves_dir: Optional[Path],
) -> Path:
    save_path = get_save_path(slot, saves_dir)
    now = datetime.now().isoformat()

    # Keep the creation time when overwriting the same session
    created_at = now
    if save_path.exists():
        try:
            existing = load_session_from_path(save_path)
            if existing.metadata.session_id == game_state.session.session_id:
                created_at = existing.metadata.created_at
        except LoadError:
            pass

    metadata = SaveMetadata(
        save_name=save_name,
        save_slot=slot,
        session_id=game_state.session.session_id,
        status=game_state.session.status,
        elapsed_minutes=game_state.now_ms / MS_PER_MINUTE,
        score=game_state.score,
        orders_completed=len(game_state.completed_orders),
        created_at=created_at,
        updated_at=now,
    )
    saved = SavedSession(metadata=metadata, game_state=game_state, config=config)

    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = save_path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(saved.model_dump_json(indent=2))
        temp_path.replace(save_path)
        return save_path
    except OSError as e:
        raise SaveError(f"Failed to save session: {e}") from e


def load_session(slot: int, saves_dir: Optional[Path] = None) -> SavedSession:
    """Load a session from a slot (0 loads the autosave).

    Raises:
        LoadError: If the slot is empty or unreadable
    """
    save_path = get_save_path(slot, saves_dir)
    if not save_path.exists():
        if slot == AUTOSAVE_SLOT:
            raise LoadError("No autosave found")
        raise LoadError(f"No save found in slot {slot}")
    return load_session_from_path(save_path)


def load_autosave(saves_dir: Optional[Path] = None) -> SavedSession:
    return load_session(AUTOSAVE_SLOT, saves_dir)


def load_session_from_path(path: Path) -> SavedSession:
    """Load a saved session from a specific file path.

    Raises:
        LoadError: If loading fails
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f"Save file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return SavedSession.model_validate(data)
    except json.JSONDecodeError as e:
        raise LoadError(f"Corrupt save file {path.name}: {e}") from e
    except ValidationError as e:
        raise LoadError(f"Save file {path.name} does not match the session format: {e}") from e
    except OSError as e:
        raise LoadError(f"Failed to read {path}: {e}") from e


def delete_save(slot: int, saves_dir: Optional[Path] = None) -> bool:
    """Delete a save slot.

    Returns:
        True if deleted, False if it didn't exist
    """
    save_path = get_save_path(slot, saves_dir)
    if save_path.exists():
        save_path.unlink()
        return True
    return False


def list_saves(saves_dir: Optional[Path] = None) -> list[SaveMetadata]:
    """Metadata of every readable save, most recently updated first."""
    if saves_dir is None:
        saves_dir = get_default_saves_dir()

    paths = [get_save_path(AUTOSAVE_SLOT, saves_dir)] + sorted(saves_dir.glob("save_*.json"))
    saves = []
    for path in paths:
        if not path.exists():
            continue
        try:
            saves.append(load_session_from_path(path).metadata)
        except LoadError:
            continue

    saves.sort(key=lambda m: m.updated_at, reverse=True)
    return saves
