"""
Pluggable storage backend factory.

Creates storage backends (MemberStore, SettingsStore) based on
configuration. The local backend uses SQLite files in the store
directory. External backends register via the ``roster.backends``
entry point group.

External backend packages provide a factory function::

    def create_stores(config: StoreConfig) -> StoreBundle:
        ...

and register it in their pyproject.toml::

    [project.entry-points."roster.backends"]
    my-backend = "my_package.backend:create_stores"
"""

from typing import NamedTuple

from .config import StoreConfig
from .protocol import MemberStoreProtocol, SettingsStoreProtocol


class StoreBundle(NamedTuple):
    """Collection of storage backends returned by the factory."""
    member_store: MemberStoreProtocol
    settings_store: SettingsStoreProtocol


def create_stores(config: StoreConfig) -> StoreBundle:
    """
    Create storage backends from configuration.

    For ``backend.name = "local"`` (default), creates SQLite MemberStore
    and SettingsStore in the store directory.

    For other values, loads the backend via the ``roster.backends`` entry
    point group.
    """
    if config.backend.name == "local":
        return _create_local_stores(config)
    return _load_backend(config.backend.name, config)


def _create_local_stores(config: StoreConfig) -> StoreBundle:
    """Create the default local storage backends."""
    from .member_store import MemberStore
    from .settings_store import SettingsStore

    return StoreBundle(
        member_store=MemberStore(config.path / "members.db"),
        settings_store=SettingsStore(config.path / "settings.db"),
    )


def _load_backend(name: str, config: StoreConfig) -> StoreBundle:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="roster.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(config)

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(
            f"Unknown backend: {name!r}. Available: {available}"
        )
    raise ValueError(
        f"Unknown backend: {name!r}. No backends registered."
    )
