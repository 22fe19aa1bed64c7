"""Registry persistence: engine, models and load/save helpers."""

from tessera.db.engine import get_engine, get_session, init_database, reset_engine
from tessera.db.models import ComponentRecord, RegistryBase, VersionRecord
from tessera.db.store import load_registry, save_component, save_registry

__all__ = [
    "ComponentRecord",
    "RegistryBase",
    "VersionRecord",
    "get_engine",
    "get_session",
    "init_database",
    "load_registry",
    "reset_engine",
    "save_component",
    "save_registry",
]
