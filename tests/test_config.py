"""Tests for YAML configuration loading and env overrides."""

import pytest
import yaml

from src.config import ShipSyncConfig, get_config, load_config, reset_config, resolve_env_vars


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    """Run each test from an empty directory with no config env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("SHIPSYNC_CONFIG", raising=False)
    monkeypatch.delenv("SHIPSYNC_SHOPIFY_REDIRECT_URI", raising=False)
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_defaults_without_file(self):
        config = load_config()
        assert config.sync.page_size == 250
        assert config.sync.inventory_batch_size == 50
        assert config.sync.max_items == 10_000
        assert config.shopify.api_version == "2024-01"
        assert "write_inventory" in config.shopify.scopes

    def test_endpoints_are_normalized(self):
        config = ShipSyncConfig(carriers={"shiprocket": "https://sr.test/v1/"})
        assert config.carriers.shiprocket == "https://sr.test/v1"

    def test_page_size_is_capped(self):
        with pytest.raises(ValueError):
            ShipSyncConfig(sync={"page_size": 500})


class TestLoadConfig:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump({"sync": {"max_items": 20}, "log_level": "debug"}))

        config = load_config(str(path))

        assert config.sync.max_items == 20
        assert config.log_level == "debug"

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_working_directory_file(self, tmp_path):
        (tmp_path / "shipsync.yaml").write_text(yaml.dump({"tracking": {"batch_size": 5}}))

        assert load_config().tracking.batch_size == 5

    def test_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text(yaml.dump({"http": {"timeout_seconds": 5}}))
        monkeypatch.setenv("SHIPSYNC_CONFIG", str(path))

        assert load_config().http.timeout_seconds == 5

    def test_env_var_references(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHOP_SECRET", "s3cret")
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"shopify": {"client_secret": "${SHOP_SECRET}"}}))

        assert load_config(str(path)).shopify.client_secret == "s3cret"

    def test_env_overrides_win(self, tmp_path, monkeypatch):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"sync": {"max_items": 20}}))
        monkeypatch.setenv("SHIPSYNC_SYNC_MAX_ITEMS", "30")
        monkeypatch.setenv("SHIPSYNC_SHOPIFY_API_VERSION", "2024-04")

        config = load_config(str(path))

        assert config.sync.max_items == 30
        assert config.shopify.api_version == "2024-04"

    def test_unknown_env_sections_ignored(self, monkeypatch):
        monkeypatch.setenv("SHIPSYNC_NOPE_FIELD", "1")
        assert load_config() == ShipSyncConfig()


def test_resolve_env_vars_missing_is_empty(monkeypatch):
    monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
    assert resolve_env_vars("a-${NOT_SET_ANYWHERE}-b") == "a--b"


def test_get_config_is_cached():
    assert get_config() is get_config()
    first = get_config()
    reset_config()
    assert get_config() is not first
