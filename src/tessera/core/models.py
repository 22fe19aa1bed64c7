"""Core data models for Tessera."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

PERMANENT = -1


def merge_max_age(a: int, b: int) -> int:
    """Pick the stricter of two max-ages; PERMANENT loses to any finite age."""
    if a == PERMANENT:
        return b
    if b == PERMANENT:
        return a
    return min(a, b)


@dataclass
class CacheMetadata:
    """Cacheability of a rendered fragment or an evaluated value."""

    contexts: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    max_age: int = PERMANENT

    def merge(self, other: CacheMetadata) -> CacheMetadata:
        """Union of contexts and tags, minimum of max-age."""
        return CacheMetadata(
            contexts=self.contexts | other.contexts,
            tags=self.tags | other.tags,
            max_age=merge_max_age(self.max_age, other.max_age),
        )

    def add_tags(self, *tags: str) -> CacheMetadata:
        self.tags.update(tags)
        return self

    def add_contexts(self, *contexts: str) -> CacheMetadata:
        self.contexts.update(contexts)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "contexts": sorted(self.contexts),
            "tags": sorted(self.tags),
            "max-age": "permanent" if self.max_age == PERMANENT else self.max_age,
        }


GLOBAL_IMPORTS = "imports"
SCOPED_IMPORTS = "scopes"


@dataclass
class Attachments:
    """Asset references attached to rendered output.

    Libraries and preload hints keep first-seen order. For import maps the
    first attached path wins when two fragments attach the same specifier.
    """

    libraries: list[str] = field(default_factory=list)
    import_maps: dict[str, dict] = field(default_factory=dict)
    preload: list[str] = field(default_factory=list)

    def add_library(self, library: str) -> None:
        if library not in self.libraries:
            self.libraries.append(library)

    def add_preload(self, url: str) -> None:
        if url not in self.preload:
            self.preload.append(url)

    def merge(self, other: Attachments) -> Attachments:
        merged = Attachments(
            libraries=list(self.libraries),
            import_maps=copy.deepcopy(self.import_maps),
            preload=list(self.preload),
        )
        for library in other.libraries:
            merged.add_library(library)
        for url in other.preload:
            merged.add_preload(url)
        imports = merged.import_maps.setdefault(GLOBAL_IMPORTS, {})
        for specifier, path in other.import_maps.get(GLOBAL_IMPORTS, {}).items():
            imports.setdefault(specifier, path)
        scopes = merged.import_maps.setdefault(SCOPED_IMPORTS, {})
        for scope, entries in other.import_maps.get(SCOPED_IMPORTS, {}).items():
            target = scopes.setdefault(scope, {})
            for specifier, path in entries.items():
                target.setdefault(specifier, path)
        if not imports:
            del merged.import_maps[GLOBAL_IMPORTS]
        if not scopes:
            del merged.import_maps[SCOPED_IMPORTS]
        return merged

    @property
    def is_empty(self) -> bool:
        return not (self.libraries or self.import_maps or self.preload)

    def to_dict(self) -> dict[str, Any]:
        return {
            "library": list(self.libraries),
            "import_maps": copy.deepcopy(self.import_maps),
            "modulepreload": list(self.preload),
        }


@dataclass
class RenderNode:
    """Markup-producing data for one component instance."""

    uuid: str
    component_id: str
    element: str  # "template", "block", "astro_island", "fallback", "placeholder"
    props: dict = field(default_factory=dict)
    slots: dict[str, str] = field(default_factory=dict)
    markup: str = ""
    cache: CacheMetadata = field(default_factory=CacheMetadata)
    attachments: Attachments = field(default_factory=Attachments)
    crashed: bool = False


@dataclass
class DependencyReport:
    """What a component needs from the host: config, content and modules."""

    config: list[str] = field(default_factory=list)
    content: list[str] = field(default_factory=list)
    module: list[str] = field(default_factory=list)

    def merge(self, other: DependencyReport) -> DependencyReport:
        return DependencyReport(
            config=sorted(set(self.config) | set(other.config)),
            content=sorted(set(self.content) | set(other.content)),
            module=sorted(set(self.module) | set(other.module)),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.config or self.content or self.module)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "config": sorted(set(self.config)),
            "content": sorted(set(self.content)),
            "module": sorted(set(self.module)),
        }


@dataclass
class ComponentInstance:
    """One placement of a component in a tree, as persisted by the host."""

    uuid: str
    component_id: str
    inputs: dict = field(default_factory=dict)
    component_version: str | None = None
    parent_uuid: str | None = None
    slot: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_uuid is None and self.slot is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "uuid": self.uuid,
            "component_id": self.component_id,
        }
        if self.component_version is not None:
            data["component_version"] = self.component_version
        if self.parent_uuid is not None:
            data["parent_uuid"] = self.parent_uuid
        if self.slot is not None:
            data["slot"] = self.slot
        data["inputs"] = self.inputs
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ComponentInstance:
        return cls(
            uuid=data["uuid"],
            component_id=data["component_id"],
            inputs=data.get("inputs") or {},
            component_version=data.get("component_version"),
            parent_uuid=data.get("parent_uuid"),
            slot=data.get("slot"),
        )
