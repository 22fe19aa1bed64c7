"""Component registry: components and their content-addressed versions."""

from tessera.registry.components import (
    FALLBACK_VERSION,
    Component,
    ComponentRegistry,
    Version,
)
from tessera.registry.fingerprint import Fingerprint, compute_version_fingerprint

__all__ = [
    "FALLBACK_VERSION",
    "Component",
    "ComponentRegistry",
    "Fingerprint",
    "Version",
    "compute_version_fingerprint",
]
