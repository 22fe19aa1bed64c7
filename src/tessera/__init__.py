"""Tessera - versioned component trees with failure-isolated rendering.

Usage:
    from tessera import ComponentInstance, Workspace

    ws = Workspace.open()
    ws.reconcile()
    result = ws.render([
        ComponentInstance(uuid="a1", component_id="tpl.acme.card", inputs={"title": "Hello"}),
    ])
    print(result.markup)
    ws.save()
"""

from tessera.core.models import CacheMetadata, ComponentInstance, DependencyReport, RenderNode
from tessera.migration import FallbackController, UsageIndex
from tessera.registry import Component, ComponentRegistry, Version
from tessera.sources import SourceContext
from tessera.tree import ComponentTree, RenderResult, TreeRenderer, hydrate, validate_tree
from tessera.workspace import Workspace

__version__ = "0.1.0"

__all__ = [
    "CacheMetadata",
    "Component",
    "ComponentInstance",
    "ComponentRegistry",
    "ComponentTree",
    "DependencyReport",
    "FallbackController",
    "RenderNode",
    "RenderResult",
    "SourceContext",
    "TreeRenderer",
    "UsageIndex",
    "Version",
    "Workspace",
    "hydrate",
    "validate_tree",
]
