"""File path resolution using platformdirs.

``SHIPSYNC_DATA_DIR`` overrides the data directory; otherwise the per-user
platform data dir is used (Linux: ~/.local/share/shipsync).
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "shipsync"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, labels)."""
    override = os.environ.get("SHIPSYNC_DATA_DIR", "").strip()
    if override:
        return Path(override)
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_labels_dir() -> Path:
    """Return the directory for downloaded label files."""
    return get_data_dir() / "labels"


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "shipsync.db"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_labels_dir()]:
        d.mkdir(parents=True, exist_ok=True)
