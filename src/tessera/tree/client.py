"""Conversion between hydrated trees and the editor's client model.

The client model is a ``layout`` list of nested component nodes plus a
``model`` map keyed by instance uuid. Component nodes name their component
as ``<component_id>@<version>`` so that pinned versions survive a round
trip through the editor.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from tessera.core.errors import InvalidInput
from tessera.core.models import ComponentInstance
from tessera.registry.components import FALLBACK_VERSION
from tessera.sources.base import SourceContext, create_source
from tessera.tree.hydrate import ComponentTree, TreeNode

if TYPE_CHECKING:
    from tessera.props.host import HostEntity
    from tessera.registry.components import ComponentRegistry


def _layout_node(node: TreeNode) -> dict[str, Any]:
    slots = []
    for name, content in node.slots.items():
        children = content if isinstance(content, list) else []
        slots.append(
            {
                "id": f"{node.uuid}/{name}",
                "name": name,
                "nodeType": "slot",
                "components": [_layout_node(child) for child in children],
            }
        )
    return {
        "uuid": node.uuid,
        "nodeType": "component",
        "type": f"{node.component.component_id}@{node.version.version_id}",
        "slots": slots,
        "name": node.component.label,
    }


def tree_to_client(tree: ComponentTree, host: HostEntity | None = None) -> dict[str, Any]:
    """Build ``{"layout": [...], "model": {uuid: {...}}}`` from a hydrated tree."""
    model = {}
    for node in tree.walk():
        explicit = node.source.explicit_inputs(node.uuid, node.instance.inputs, host)
        model[node.uuid] = node.source.input_to_client_model(explicit)
    return {
        "layout": [_layout_node(root) for root in tree.roots],
        "model": model,
    }


def _split_type(component_type: str) -> tuple[str, str | None]:
    component_id, sep, version = component_type.rpartition("@")
    if not sep:
        return component_type, None
    return component_id, version or None


def _walk_layout(
    nodes: list[dict], parent_uuid: str | None = None, slot: str | None = None
) -> Iterator[tuple[dict, str | None, str | None]]:
    for node in nodes:
        yield node, parent_uuid, slot
        for slot_node in node.get("slots", []):
            yield from _walk_layout(slot_node.get("components", []), node["uuid"], slot_node["name"])


def client_to_instances(
    client: dict[str, Any],
    registry: ComponentRegistry,
    context: SourceContext,
    host: HostEntity | None = None,
) -> list[ComponentInstance]:
    """Turn a client model back into flat, storable instance records.

    Transient ``resolved`` values are dropped; each prop keeps only what its
    source descriptor needs (collapsed to a bare value where possible).
    """
    model = client.get("model", {})
    instances = []
    for node, parent_uuid, slot in _walk_layout(client.get("layout", [])):
        if node.get("nodeType", "component") != "component":
            raise InvalidInput(f"Unexpected layout node type: {node.get('nodeType')}")
        uuid = node["uuid"]
        component_id, version_id = _split_type(node["type"])
        component, version = registry.resolve(component_id, version_id)
        source = create_source(component, version, context)
        inputs = source.client_model_to_input(uuid, model.get(uuid, {}), host)
        if version.version_id == FALLBACK_VERSION:
            # Instances never pin the fallback version.
            version = component.last_real_version()
        instances.append(
            ComponentInstance(
                uuid=uuid,
                component_id=component_id,
                inputs=inputs,
                component_version=version.version_id,
                parent_uuid=parent_uuid,
                slot=slot,
            )
        )
    return instances
