"""Fallback and version-migration controller.

Per component, the controller moves between two states:

- active: the component renders through its own source, and discovery
  keeps appending versions as its definition evolves.
- broken: the capability behind the component is gone. The component
  is disabled and renders through the fallback source while instances keep
  their stored inputs untouched. A broken component nobody uses is pruned
  instead.

Recovery restores the real source and re-enables the component. Every
transition builds the complete new component state on a copy and swaps it
into the registry in one step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from tessera.core.errors import BrokenComponentError
from tessera.registry.components import FALLBACK_VERSION, Component, Version
from tessera.sources.base import (
    CandidateDefinition,
    SourceContext,
    create_real_source,
    get_source_class,
    list_sources,
)

if TYPE_CHECKING:
    from tessera.core.logging import RenderLogger
    from tessera.migration.usage import UsageIndex
    from tessera.registry.components import ComponentRegistry

logger = logging.getLogger(__name__)


class ComponentState(str, Enum):
    ACTIVE = "active"
    BROKEN = "broken"


@dataclass
class ReconcileReport:
    """What a regenerate or reconcile pass changed."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    disabled: list[str] = field(default_factory=list)
    broken: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    recovered: list[str] = field(default_factory=list)
    skipped: dict[str, list[str]] = field(default_factory=dict)  # ineligible id -> reasons

    @property
    def changed(self) -> bool:
        return any((self.created, self.updated, self.disabled, self.broken, self.pruned, self.recovered))

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "disabled": self.disabled,
            "broken": self.broken,
            "pruned": self.pruned,
            "recovered": self.recovered,
            "skipped": self.skipped,
        }


def discover_candidates(context: SourceContext) -> list[CandidateDefinition]:
    """Ask every non-fallback source for its candidate definitions."""
    candidates: list[CandidateDefinition] = []
    for name in list_sources():
        candidates.extend(get_source_class(name).discover(context))
    return candidates


class FallbackController:
    """Applies discovery results and capability loss to a registry."""

    def __init__(
        self,
        registry: ComponentRegistry,
        context: SourceContext,
        usage: UsageIndex,
        render_logger: RenderLogger | None = None,
    ):
        self.registry = registry
        self.context = context
        self.usage = usage
        self.render_logger = render_logger

    def state(self, component_id: str) -> ComponentState:
        component = self.registry.load(component_id)
        return ComponentState.BROKEN if component.is_fallback else ComponentState.ACTIVE

    # -- Discovery --

    def regenerate(self, candidates: list[CandidateDefinition] | None = None) -> ReconcileReport:
        """Materialise eligible candidates as components or new versions.

        Idempotent: running it twice over the same candidates changes nothing
        the second time.
        """
        if candidates is None:
            candidates = discover_candidates(self.context)
        report = ReconcileReport()
        for candidate in candidates:
            existing = self.registry.get(candidate.component_id)
            if not candidate.eligible:
                report.skipped[candidate.component_id] = list(candidate.reasons)
                if existing is not None and existing.status and not existing.is_fallback:
                    self._set_status(existing, False)
                    report.disabled.append(candidate.component_id)
                    logger.info(
                        "Disabled component %s: %s", candidate.component_id, "; ".join(candidate.reasons)
                    )
                continue

            version = Version.from_snapshot(candidate.settings, candidate.slot_definitions, candidate.schema)
            if existing is None:
                self.registry.add(
                    Component(
                        component_id=candidate.component_id,
                        label=candidate.label,
                        source=candidate.source,
                        source_local_id=candidate.local_id,
                        provider=candidate.provider,
                        category=candidate.category,
                    )
                )
                self.registry.create_version(candidate.component_id, version)
                report.created.append(candidate.component_id)
            elif existing.is_fallback:
                self.recover_component(candidate.component_id, version)
                report.recovered.append(candidate.component_id)
            else:
                previous = existing.active_version
                self.registry.create_version(candidate.component_id, version)
                if self.registry.active_version(candidate.component_id) != previous:
                    report.updated.append(candidate.component_id)
                if not existing.status:
                    self._set_status(self.registry.load(candidate.component_id), True)
        return report

    # -- Capability loss and return --

    def reconcile(self, candidates: list[CandidateDefinition] | None = None) -> ReconcileReport:
        """Regenerate, then break or recover components whose capability changed."""
        report = self.regenerate(candidates)
        for component in self.registry.all():
            if component.component_id in report.recovered:
                continue
            real = create_real_source(component, component.last_real_version(), self.context)
            broken = real.is_broken()
            if broken and not component.is_fallback:
                if self.break_component(component.component_id):
                    report.broken.append(component.component_id)
                else:
                    report.pruned.append(component.component_id)
            elif not broken and component.is_fallback:
                self.recover_component(component.component_id)
                report.recovered.append(component.component_id)
        return report

    def break_component(self, component_id: str) -> bool:
        """Move a component to the fallback source, or prune it if unused.

        Pruning needs a complete usage index; without one the component is
        kept on fallback. Returns True when the component was kept on
        fallback, False when it was removed.
        """
        component = self.registry.load(component_id)
        if component.is_fallback:
            raise BrokenComponentError(f"Component {component_id} is already broken")
        usages = self.usage.count(component_id)
        if self.usage.is_known_unused(component_id):
            self.registry.remove(component_id)
            logger.warning("Pruned unused broken component %s", component_id)
            if self.render_logger is not None:
                self.render_logger.component_pruned(component_id)
            return False

        updated = component.copy()
        updated.create_version(
            Version.named(FALLBACK_VERSION, {"last_active_version": component.active_version})
        )
        updated.status = False
        self.registry.replace(updated)
        logger.warning(
            "Component %s is broken; %d usage(s) now render through the fallback source",
            component_id,
            usages,
        )
        if not self.usage.complete:
            logger.warning("Usage of %s is unknown; kept on the fallback source instead of pruning", component_id)
        if self.render_logger is not None:
            self.render_logger.component_broken(component_id, usages)
        return True

    def recover_component(self, component_id: str, version: Version | None = None) -> str:
        """Restore a broken component to its real source.

        Without a freshly discovered ``version`` the version that was active
        before the component broke is restored.
        """
        component = self.registry.load(component_id)
        if not component.is_fallback:
            return component.active_version
        if version is None:
            version = component.last_real_version()

        updated = component.copy()
        updated.create_version(version)
        updated.delete_version(FALLBACK_VERSION)
        updated.status = True
        self.registry.replace(updated)
        logger.info("Component %s recovered at version %s", component_id, version.version_id)
        if self.render_logger is not None:
            self.render_logger.component_recovered(component_id, version.version_id)
        return version.version_id

    def _set_status(self, component: Component, status: bool) -> None:
        updated = component.copy()
        updated.status = status
        self.registry.replace(updated)
