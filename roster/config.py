"""
Configuration management for roster stores.

The configuration is stored as a TOML file in the store directory.
It specifies the storage backend and the tag vocabulary settings.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .types import DEFAULT_TAGS


CONFIG_FILENAME = "roster.toml"
CONFIG_VERSION = 1

# How long the custom tag vocabulary is served from cache
DEFAULT_TAG_CACHE_TTL = 5.0


@dataclass
class BackendConfig:
    """Storage backend selection."""
    name: str = "local"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class TagConfig:
    """Tag vocabulary settings."""
    cache_ttl_seconds: float = DEFAULT_TAG_CACHE_TTL
    defaults: tuple[str, ...] = DEFAULT_TAGS


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    backend: BackendConfig = field(default_factory=BackendConfig)
    tags: TagConfig = field(default_factory=TagConfig)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """
    Resolve the store directory.

    Priority:
    1. ROSTER_STORE_PATH environment variable
    2. ~/.roster
    """
    env_path = os.environ.get("ROSTER_STORE_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".roster"


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    backend = data.get("backend", {"name": "local"})
    tags = data.get("tags", {})

    ttl = tags.get("cache_ttl_seconds", DEFAULT_TAG_CACHE_TTL)
    if not isinstance(ttl, (int, float)) or ttl < 0:
        raise ValueError(f"tags.cache_ttl_seconds must be a non-negative number: {ttl!r}")
    defaults = tags.get("defaults", list(DEFAULT_TAGS))
    if not isinstance(defaults, list) or not all(isinstance(t, str) for t in defaults):
        raise ValueError("tags.defaults must be a list of strings")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        backend=BackendConfig(
            name=backend.get("name", "local"),
            params={k: v for k, v in backend.items() if k != "name"},
        ),
        tags=TagConfig(cache_ttl_seconds=float(ttl), defaults=tuple(defaults)),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    backend = {"name": config.backend.name}
    backend.update(config.backend.params)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "tags": {
            "cache_ttl_seconds": config.tags.cache_ttl_seconds,
            "defaults": list(config.tags.defaults),
        },
        "backend": backend,
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Optional[Path] = None) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if store_path is None:
        store_path = get_default_store_path()
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
