"""Hydrate a flat, unordered instance list into a nested component tree."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tessera.core.errors import StructuralError
from tessera.core.models import ComponentInstance
from tessera.sources.base import ComponentSource, SourceContext, default_slot_values
from tessera.tree.validate import resolve_sources, validate_structure

if TYPE_CHECKING:
    from tessera.props.host import HostEntity
    from tessera.registry.components import Component, ComponentRegistry, Version

ROOT_UUID = "a548b48d-58a8-4077-aa04-da9405a6f418"


@dataclass
class TreeNode:
    """One resolved instance with its slots.

    A slot holds either the list of its child nodes (in flat-list order) or,
    when nothing was placed in it, the slot's default example string.
    """

    instance: ComponentInstance
    source: ComponentSource
    slots: dict[str, list[TreeNode] | str] = field(default_factory=dict)

    @property
    def uuid(self) -> str:
        return self.instance.uuid

    @property
    def component(self) -> Component:
        return self.source.component

    @property
    def version(self) -> Version:
        return self.source.version

    def walk(self) -> Iterator[TreeNode]:
        """Pre-order traversal of this node and its descendants."""
        yield self
        for content in self.slots.values():
            if isinstance(content, list):
                for child in content:
                    yield from child.walk()

    def to_dict(self, host: HostEntity | None = None) -> dict[str, Any]:
        hydrated = self.source.hydrate(self.uuid, self.instance.inputs, host)
        slots: dict[str, Any] = {}
        for name, content in self.slots.items():
            if isinstance(content, list):
                slots[name] = {child.uuid: child.to_dict(host) for child in content}
            else:
                slots[name] = content
        return {
            "component": self.component.component_id,
            "version": self.version.version_id,
            **hydrated,
            "slots": slots,
        }


@dataclass
class ComponentTree:
    """Root nodes of a hydrated component tree, in flat-list order."""

    roots: list[TreeNode] = field(default_factory=list)

    def walk(self) -> Iterator[TreeNode]:
        for root in self.roots:
            yield from root.walk()

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def find(self, uuid: str) -> TreeNode | None:
        return next((node for node in self.walk() if node.uuid == uuid), None)

    def flatten(self) -> list[ComponentInstance]:
        """Back to a flat instance list, in pre-order."""
        return [node.instance for node in self.walk()]

    def to_dict(self, host: HostEntity | None = None) -> dict[str, Any]:
        return {ROOT_UUID: {root.uuid: root.to_dict(host) for root in self.roots}}


def hydrate(
    instances: Sequence[ComponentInstance],
    registry: ComponentRegistry,
    context: SourceContext,
) -> ComponentTree:
    """Resolve every instance and assign children to their parents' slots.

    Structural problems are rejected before anything is built. Instances
    that reference unknown components or versions raise the registry's
    resolution error.
    """
    sources, resolution = resolve_sources(instances, registry, context)
    violations = validate_structure(instances, sources)
    if violations:
        raise StructuralError(violations)
    if resolution:
        # Re-raise the registry's own error for the first unresolvable instance.
        first = next(i for i in instances if i.uuid not in sources)
        registry.resolve(first.component_id, first.component_version)

    by_parent: dict[str | None, list[ComponentInstance]] = defaultdict(list)
    for instance in instances:
        by_parent[instance.parent_uuid].append(instance)

    def build(instance: ComponentInstance) -> TreeNode:
        source = sources[instance.uuid]
        node = TreeNode(
            instance=instance,
            source=source,
            slots=dict(default_slot_values(source.slot_definitions())),
        )
        for child in by_parent.get(instance.uuid, []):
            content = node.slots.get(child.slot)
            if not isinstance(content, list):
                content = node.slots[child.slot] = []
            content.append(build(child))
        return node

    return ComponentTree(roots=[build(i) for i in by_parent.get(None, [])])
