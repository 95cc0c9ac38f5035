"""Tests for store configuration."""

import tomllib

import pytest

from roster.config import (
    CONFIG_FILENAME,
    DEFAULT_TAG_CACHE_TTL,
    StoreConfig,
    TagConfig,
    get_default_store_path,
    load_config,
    load_or_create_config,
    save_config,
)
from roster.types import DEFAULT_TAGS


class TestLoadOrCreate:

    def test_creates_with_defaults(self, tmp_path):
        config = load_or_create_config(tmp_path / "new")
        assert (tmp_path / "new" / CONFIG_FILENAME).exists()
        assert config.backend.name == "local"
        assert config.tags.cache_ttl_seconds == DEFAULT_TAG_CACHE_TTL
        assert config.tags.defaults == DEFAULT_TAGS

    def test_loads_existing(self, tmp_path):
        save_config(StoreConfig(path=tmp_path, tags=TagConfig(cache_ttl_seconds=30)))
        config = load_or_create_config(tmp_path)
        assert config.tags.cache_ttl_seconds == 30.0

    def test_saved_file_is_toml(self, tmp_path):
        save_config(StoreConfig(path=tmp_path, tags=TagConfig(defaults=("Elder",))))
        with open(tmp_path / CONFIG_FILENAME, "rb") as f:
            data = tomllib.load(f)
        assert data["tags"]["defaults"] == ["Elder"]
        assert data["backend"]["name"] == "local"
        assert data["store"]["version"] == 1

    def test_backend_params_roundtrip(self, tmp_path):
        config = StoreConfig(path=tmp_path)
        config.backend.name = "remote"
        config.backend.params = {"url": "https://example.org"}
        save_config(config)
        loaded = load_config(tmp_path)
        assert loaded.backend.name == "remote"
        assert loaded.backend.params == {"url": "https://example.org"}


class TestValidation:

    def _write(self, path, text):
        path.mkdir(parents=True, exist_ok=True)
        (path / CONFIG_FILENAME).write_text(text)

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        self._write(tmp_path, "[store]\nversion = 99\n")
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    @pytest.mark.parametrize("ttl", ["-1", '"soon"'])
    def test_bad_ttl(self, tmp_path, ttl):
        self._write(tmp_path, f"[tags]\ncache_ttl_seconds = {ttl}\n")
        with pytest.raises(ValueError, match="cache_ttl_seconds"):
            load_config(tmp_path)

    def test_bad_defaults(self, tmp_path):
        self._write(tmp_path, "[tags]\ndefaults = [1, 2]\n")
        with pytest.raises(ValueError, match="defaults"):
            load_config(tmp_path)

    def test_sections_optional(self, tmp_path):
        self._write(tmp_path, "")
        config = load_config(tmp_path)
        assert config.backend.name == "local"
        assert config.tags.defaults == DEFAULT_TAGS


class TestStorePath:

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROSTER_STORE_PATH", str(tmp_path / "env"))
        assert get_default_store_path() == (tmp_path / "env").resolve()

    def test_home_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ROSTER_STORE_PATH", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_default_store_path() == tmp_path / ".roster"

    def test_directory_uses_env_var(self, tmp_path, monkeypatch, timestamps):
        from roster.api import Directory
        monkeypatch.setenv("ROSTER_STORE_PATH", str(tmp_path / "env"))
        with Directory(clock=timestamps) as d:
            assert d.store_path == (tmp_path / "env").resolve()
            assert d.config.exists()


class TestBackendFactory:

    def test_local_backend(self, tmp_path):
        from roster.backend import create_stores
        from roster.protocol import MemberStoreProtocol, SettingsStoreProtocol

        bundle = create_stores(StoreConfig(path=tmp_path))
        try:
            assert isinstance(bundle.member_store, MemberStoreProtocol)
            assert isinstance(bundle.settings_store, SettingsStoreProtocol)
            assert (tmp_path / "members.db").exists()
        finally:
            bundle.member_store.close()
            bundle.settings_store.close()

    def test_unknown_backend(self, tmp_path):
        from roster.backend import create_stores

        config = StoreConfig(path=tmp_path)
        config.backend.name = "no-such-backend"
        with pytest.raises(ValueError, match="Unknown backend"):
            create_stores(config)
