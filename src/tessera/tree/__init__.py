"""Component tree engine: validation, hydration, rendering and client model."""

from tessera.tree.client import client_to_instances, tree_to_client
from tessera.tree.hydrate import ROOT_UUID, ComponentTree, TreeNode, hydrate
from tessera.tree.render import (
    LIVE_FAILURE_MESSAGE,
    PREVIEW_FAILURE_MESSAGE,
    NodeResult,
    RenderFailure,
    RenderResult,
    TreeRenderer,
    rendering_context,
)
from tessera.tree.validate import ValidationResult, Violation, validate_structure, validate_tree

__all__ = [
    "LIVE_FAILURE_MESSAGE",
    "PREVIEW_FAILURE_MESSAGE",
    "ROOT_UUID",
    "ComponentTree",
    "NodeResult",
    "RenderFailure",
    "RenderResult",
    "TreeNode",
    "TreeRenderer",
    "ValidationResult",
    "Violation",
    "client_to_instances",
    "hydrate",
    "rendering_context",
    "tree_to_client",
    "validate_structure",
    "validate_tree",
]
