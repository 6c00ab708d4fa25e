"""Tests for file path resolution."""

import os
from pathlib import Path
from unittest.mock import patch

from src.utils.paths import ensure_dirs_exist, get_data_dir, get_default_db_path, get_labels_dir


def test_data_dir_override(tmp_path):
    with patch.dict(os.environ, {"SHIPSYNC_DATA_DIR": str(tmp_path / "data")}):
        assert get_data_dir() == tmp_path / "data"
        assert get_labels_dir() == tmp_path / "data" / "labels"


def test_data_dir_falls_back_to_platformdirs():
    with patch.dict(os.environ, {"SHIPSYNC_DATA_DIR": ""}):
        result = get_data_dir()
    assert isinstance(result, Path)
    assert "shipsync" in str(result).lower()


def test_get_default_db_path():
    assert get_default_db_path().name == "shipsync.db"


def test_ensure_dirs_exist(tmp_path):
    with patch.dict(os.environ, {"SHIPSYNC_DATA_DIR": str(tmp_path / "d")}):
        ensure_dirs_exist()
    assert (tmp_path / "d" / "labels").is_dir()


def test_database_url_precedence(tmp_path):
    from src.db.connection import get_async_database_url, get_database_url

    with patch.dict(os.environ, {"DATABASE_URL": "sqlite:///custom/path.db"}):
        assert get_database_url() == "sqlite:///custom/path.db"
        assert get_async_database_url() == "sqlite+aiosqlite:///custom/path.db"

    with patch.dict(os.environ, {"DATABASE_URL": "", "SHIPSYNC_DB_PATH": str(tmp_path / "x.db")}):
        assert get_database_url() == f"sqlite:///{tmp_path / 'x.db'}"

    with patch.dict(os.environ, {"DATABASE_URL": "", "SHIPSYNC_DB_PATH": "", "SHIPSYNC_DATA_DIR": str(tmp_path)}):
        assert get_database_url() == f"sqlite:///{tmp_path / 'shipsync.db'}"
