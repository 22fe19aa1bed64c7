"""Fallback and version-migration controller."""

from tessera.migration.controller import (
    ComponentState,
    FallbackController,
    ReconcileReport,
    discover_candidates,
)
from tessera.migration.usage import UsageIndex

__all__ = [
    "ComponentState",
    "FallbackController",
    "ReconcileReport",
    "UsageIndex",
    "discover_candidates",
]
