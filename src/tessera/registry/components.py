"""Components and their version history.

A component's versions are immutable settings snapshots identified by the
hash of their canonical serialization. The registry is an explicit value:
callers construct one per resolution pass (or load one from the database)
and pass it to whatever needs it.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from tessera.core.errors import (
    BrokenComponentError,
    ComponentError,
    UnknownComponent,
    UnknownVersion,
    VersionError,
)
from tessera.registry.fingerprint import Fingerprint, compute_version_fingerprint

if TYPE_CHECKING:
    from tessera.core.logging import RenderLogger

logger = logging.getLogger(__name__)

# Reserved version id and source discriminant used while a component's
# source is unavailable.
FALLBACK_VERSION = "fallback"
FALLBACK_SOURCE = "fallback"


@dataclass(frozen=True)
class Version:
    """An immutable settings snapshot of a component."""

    version_id: str
    settings: dict
    slot_definitions: dict = field(default_factory=dict)
    schema: dict = field(default_factory=dict)
    fingerprint: Fingerprint | None = None

    @classmethod
    def from_snapshot(
        cls,
        settings: dict,
        slot_definitions: dict | None = None,
        schema: dict | None = None,
    ) -> Version:
        """Build a version whose id is the hash of the snapshot."""
        fp = compute_version_fingerprint(settings, slot_definitions, schema)
        return cls(
            version_id=fp.version_id,
            settings=copy.deepcopy(settings),
            slot_definitions=copy.deepcopy(slot_definitions or {}),
            schema=copy.deepcopy(schema or {}),
            fingerprint=fp,
        )

    @classmethod
    def named(cls, version_id: str, settings: dict) -> Version:
        """A version with an explicit, non-hash id (e.g. the fallback version)."""
        return cls(version_id=version_id, settings=copy.deepcopy(settings))

    def to_dict(self) -> dict:
        return {
            "version_id": self.version_id,
            "settings": self.settings,
            "slot_definitions": self.slot_definitions,
            "schema": self.schema,
            "fingerprint": self.fingerprint.to_dict() if self.fingerprint else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Version:
        return cls(
            version_id=data["version_id"],
            settings=data.get("settings") or {},
            slot_definitions=data.get("slot_definitions") or {},
            schema=data.get("schema") or {},
            fingerprint=Fingerprint.from_dict(data.get("fingerprint") or {}),
        )


def _clean_slot_definitions(slot_definitions: dict) -> dict:
    """Keep only the slot metadata the fallback source needs."""
    keep = ("title", "description", "examples")
    return {
        name: {k: v for k, v in definition.items() if k in keep}
        for name, definition in slot_definitions.items()
    }


@dataclass
class Component:
    """A named UI capability with a version history.

    ``history`` lists version ids most recent first and may repeat an id when
    a reverted settings snapshot re-surfaces an earlier hash.
    """

    component_id: str
    label: str
    source: str  # discriminant of the component source plugin
    source_local_id: str
    provider: str | None = None
    category: str = ""
    status: bool = True
    active_version: str = ""
    history: list[str] = field(default_factory=list)
    versions: dict[str, Version] = field(default_factory=dict)
    fallback_metadata: dict = field(default_factory=dict)

    @property
    def cache_tag(self) -> str:
        return f"config:component.{self.component_id}"

    @property
    def config_name(self) -> str:
        return f"component.{self.component_id}"

    @property
    def is_fallback(self) -> bool:
        return self.active_version == FALLBACK_VERSION

    @property
    def effective_source(self) -> str:
        """The source instances render through; Fallback while broken."""
        return FALLBACK_SOURCE if self.is_fallback else self.source

    def last_real_version(self) -> Version:
        """The version that was active before the component broke."""
        if self.is_fallback:
            return self.get_version(self.versions[FALLBACK_VERSION].settings["last_active_version"])
        return self.get_version()

    def get_version(self, version_id: str | None = None) -> Version:
        """Load a version from history; None means the active version."""
        target = version_id or self.active_version
        if target not in self.versions:
            raise UnknownVersion(self.component_id, target, self.available_versions())
        return self.versions[target]

    def available_versions(self) -> list[str]:
        """Unique version ids, most recent first."""
        return list(dict.fromkeys(self.history))

    def create_version(self, version: Version) -> bool:
        """Make ``version`` active. Returns False when it already was."""
        if version.version_id == self.active_version:
            return False
        self.versions.setdefault(version.version_id, version)
        self.history.insert(0, version.version_id)
        self.active_version = version.version_id
        if version.version_id != FALLBACK_VERSION:
            self.fallback_metadata["slot_definitions"] = _clean_slot_definitions(
                self.versions[version.version_id].slot_definitions
            )
        return True

    def delete_version(self, version_id: str) -> None:
        if version_id == self.active_version:
            raise VersionError(
                f"Cannot delete the active version `{version_id}` of component "
                f"{self.component_id}."
            )
        if version_id not in self.versions:
            raise UnknownVersion(self.component_id, version_id, self.available_versions())
        del self.versions[version_id]
        self.history = [v for v in self.history if v != version_id]

    def copy(self) -> Component:
        return replace(
            self,
            history=list(self.history),
            versions=dict(self.versions),
            fallback_metadata=copy.deepcopy(self.fallback_metadata),
        )

    def to_dict(self) -> dict:
        return {
            "component_id": self.component_id,
            "label": self.label,
            "source": self.source,
            "source_local_id": self.source_local_id,
            "provider": self.provider,
            "category": self.category,
            "status": self.status,
            "active_version": self.active_version,
            "history": list(self.history),
            "versions": {vid: v.to_dict() for vid, v in self.versions.items()},
            "fallback_metadata": self.fallback_metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Component:
        return cls(
            component_id=data["component_id"],
            label=data.get("label", data["component_id"]),
            source=data["source"],
            source_local_id=data.get("source_local_id", ""),
            provider=data.get("provider"),
            category=data.get("category", ""),
            status=data.get("status", True),
            active_version=data.get("active_version", ""),
            history=list(data.get("history", [])),
            versions={
                vid: Version.from_dict(v) for vid, v in (data.get("versions") or {}).items()
            },
            fallback_metadata=data.get("fallback_metadata") or {},
        )


class ComponentRegistry:
    """Maps component ids to components and resolves versions.

    Every mutation works on a copy of the component and swaps it in with a
    single assignment, so readers never observe a half-updated component.
    """

    def __init__(
        self,
        components: Iterable[Component] = (),
        render_logger: RenderLogger | None = None,
    ):
        self._components: dict[str, Component] = {}
        self.render_logger = render_logger
        for component in components:
            self.add(component)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._components

    def __iter__(self) -> Iterator[Component]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._components)

    def all(self) -> list[Component]:
        return [self._components[k] for k in sorted(self._components)]

    def get(self, component_id: str) -> Component | None:
        return self._components.get(component_id)

    def load(self, component_id: str) -> Component:
        component = self._components.get(component_id)
        if component is None:
            raise UnknownComponent(component_id)
        return component

    def add(self, component: Component) -> Component:
        if component.component_id in self._components:
            raise ComponentError(f"Component already registered: {component.component_id}")
        self._components[component.component_id] = component
        return component

    def replace(self, component: Component) -> None:
        """Swap in a new state for an existing component."""
        if component.component_id not in self._components:
            raise UnknownComponent(component.component_id)
        self._components[component.component_id] = component

    def remove(self, component_id: str) -> Component:
        component = self.load(component_id)
        del self._components[component_id]
        return component

    # -- Resolution --

    def resolve(self, component_id: str, version: str | None = None) -> tuple[Component, Version]:
        """Resolve a component and the version an instance should render with.

        Without an explicit version the active version at call time is used.
        """
        component = self.load(component_id)
        return component, component.get_version(version)

    def load_version(self, component_id: str, version_id: str) -> Version:
        return self.load(component_id).get_version(version_id)

    def active_version(self, component_id: str) -> str:
        return self.load(component_id).active_version

    def versions(self, component_id: str) -> list[str]:
        """Full history, most recent first."""
        return list(self.load(component_id).history)

    # -- Version management --

    def create_version_if_changed(
        self,
        component_id: str,
        settings: dict,
        slot_definitions: dict | None = None,
        schema: dict | None = None,
    ) -> str:
        """Hash the snapshot and make it active unless it already is.

        Idempotent: repeating the call with the same snapshot never appends
        a second version.
        """
        version = Version.from_snapshot(settings, slot_definitions, schema)
        return self.create_version(component_id, version)

    def create_version(self, component_id: str, version: Version) -> str:
        """Make ``version`` active on a component that renders through its own source.

        Broken components only change through recovery in the fallback controller.
        """
        component = self.load(component_id)
        if component.is_fallback:
            raise BrokenComponentError(
                f"Component {component_id} is broken; recover it before adding versions"
            )
        if version.version_id == component.active_version:
            return version.version_id
        updated = component.copy()
        updated.create_version(version)
        self._components[component_id] = updated
        logger.debug("Component %s now at version %s", component_id, version.version_id)
        if self.render_logger is not None:
            self.render_logger.version_created(component_id, version.version_id)
        return version.version_id

    def delete_version(self, component_id: str, version_id: str) -> None:
        updated = self.load(component_id).copy()
        updated.delete_version(version_id)
        self._components[component_id] = updated

    def delete_version_if_exists(self, component_id: str, version_id: str) -> bool:
        component = self.load(component_id)
        if version_id not in component.versions:
            return False
        self.delete_version(component_id, version_id)
        return True
