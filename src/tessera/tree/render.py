"""Depth-first tree rendering with per-node failure isolation.

Every instance renders inside a render-safe container: its own source
renders first, then each slot's children (in flat-list order), whose
markup is threaded back into the parent's slots. A node that raises is
replaced by a placeholder carrying its uuid; siblings and ancestors keep
rendering. Cache metadata of every successfully rendered descendant bubbles
up into its ancestors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from markupsafe import Markup

from tessera.core.markup import comment, element, text_or_markup
from tessera.core.models import Attachments, CacheMetadata, ComponentInstance, RenderNode
from tessera.sources.base import SourceContext
from tessera.tree.hydrate import ComponentTree, TreeNode, hydrate

if TYPE_CHECKING:
    from tessera.core.logging import RenderLogger
    from tessera.props.host import HostEntity
    from tessera.registry.components import ComponentRegistry

logger = logging.getLogger(__name__)

PREVIEW_FAILURE_MESSAGE = "Component failed to render, check logs for more detail."
LIVE_FAILURE_MESSAGE = "Oops, something went wrong! Site admins have been notified."
EMPTY_SLOT_PLACEHOLDER = Markup('<div class="tessera--slot-empty-placeholder"></div>')


@dataclass
class RenderFailure:
    """A runtime failure captured by a render-safe container."""

    uuid: str
    component_id: str
    version: str
    error: Exception
    context: str

    @property
    def message(self) -> str:
        return (
            f"{type(self.error).__name__} occurred during rendering of component "
            f"{self.uuid} in {self.context}: {self.error}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "component_id": self.component_id,
            "version": self.version,
            "error": type(self.error).__name__,
            "message": str(self.error),
        }


@dataclass
class NodeResult:
    """Outcome of rendering one instance: a node or a failure, never both."""

    uuid: str
    node: RenderNode | None = None
    failure: RenderFailure | None = None

    @property
    def success(self) -> bool:
        return self.node is not None and self.failure is None


@dataclass
class RenderResult:
    """Rendered roots plus aggregated cache metadata and attachments."""

    nodes: list[RenderNode] = field(default_factory=list)
    cache: CacheMetadata = field(default_factory=CacheMetadata)
    attachments: Attachments = field(default_factory=Attachments)
    failures: list[RenderFailure] = field(default_factory=list)

    @property
    def markup(self) -> str:
        return "".join(node.markup for node in self.nodes)

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "markup": self.markup,
            "cache": self.cache.to_dict(),
            "attachments": self.attachments.to_dict(),
            "failures": [f.to_dict() for f in self.failures],
        }


def rendering_context(host: HostEntity | None, field_name: str) -> str:
    """Identify where a tree lives, for log messages."""
    if host is None:
        return f"component tree, field {field_name}"
    return host.rendering_context(field_name)


class TreeRenderer:
    """Renders component trees against one registry and source context."""

    def __init__(
        self,
        registry: ComponentRegistry,
        context: SourceContext,
        render_logger: RenderLogger | None = None,
    ):
        self.registry = registry
        self.context = context
        self.render_logger = render_logger

    def render(
        self,
        tree: ComponentTree | Sequence[ComponentInstance],
        host: HostEntity | None = None,
        is_preview: bool = False,
        field_name: str = "components",
    ) -> RenderResult:
        """Render a hydrated tree, or hydrate and render a flat instance list.

        Structural and resolution errors raise before anything renders;
        runtime render failures never escape.
        """
        if not isinstance(tree, ComponentTree):
            tree = hydrate(tree, self.registry, self.context)
        where = rendering_context(host, field_name)
        start = time.time()
        if self.render_logger is not None:
            self.render_logger.render_start(where, len(tree), is_preview)

        result = RenderResult()
        for root in tree.roots:
            node = self._contain(root, host, is_preview, where, result.failures)
            result.nodes.append(node)
            result.cache = result.cache.merge(node.cache)
            result.attachments = result.attachments.merge(node.attachments)

        if self.render_logger is not None:
            self.render_logger.render_finish(time.time() - start)
        return result

    def _contain(
        self,
        tree_node: TreeNode,
        host: HostEntity | None,
        is_preview: bool,
        where: str,
        failures: list[RenderFailure],
    ) -> RenderNode:
        """Render-safe container: a rendered node, or a placeholder on failure."""
        result = self.render_node(tree_node, host, is_preview, where, failures)
        if result.success:
            if self.render_logger is not None:
                self.render_logger.node_rendered(
                    tree_node.uuid, tree_node.component.component_id, tree_node.version.version_id
                )
            return result.node

        failure = result.failure
        logger.error(
            "%s occurred during rendering of component %s in %s: %s",
            type(failure.error).__name__,
            failure.uuid,
            failure.context,
            failure.error,
        )
        failures.append(failure)
        if self.render_logger is not None:
            self.render_logger.node_failed(failure.uuid, failure.component_id, failure.version, failure.message)
        return self._placeholder(tree_node, is_preview)

    def render_node(
        self,
        tree_node: TreeNode,
        host: HostEntity | None,
        is_preview: bool,
        where: str,
        failures: list[RenderFailure],
    ) -> NodeResult:
        """Render one instance and its slots, capturing any exception it raises.

        Failures of descendants reach ``failures`` only when this node renders.
        """
        source = tree_node.source
        uuid = tree_node.uuid
        try:
            inputs = source.explicit_inputs(uuid, tree_node.instance.inputs, host)
            node = source.render(inputs, source.slot_definitions(), uuid, is_preview)
            node.cache.add_tags(tree_node.component.cache_tag)

            child_failures: list[RenderFailure] = []
            slots: dict[str, Markup] = {}
            for slot_name, content in tree_node.slots.items():
                if isinstance(content, str):
                    slot_markup = self._default_slot(content, is_preview)
                else:
                    children = [self._contain(child, host, is_preview, where, child_failures) for child in content]
                    for child in children:
                        node.cache = node.cache.merge(child.cache)
                        node.attachments = node.attachments.merge(child.attachments)
                    slot_markup = Markup("").join(Markup(child.markup) for child in children)
                if is_preview:
                    slot_id = f"{uuid}/{slot_name}"
                    slot_markup = (
                        comment(f"tessera-slot-start-{slot_id}")
                        + slot_markup
                        + comment(f"tessera-slot-end-{slot_id}")
                    )
                slots[slot_name] = slot_markup
            source.set_slots(node, slots)
            node.markup = self._wrap(uuid, Markup(source.markup(node)), is_preview)
            failures.extend(child_failures)
        except Exception as e:
            return NodeResult(
                uuid=uuid,
                failure=RenderFailure(
                    uuid=uuid,
                    component_id=tree_node.component.component_id,
                    version=tree_node.version.version_id,
                    error=e,
                    context=where,
                ),
            )
        return NodeResult(uuid=uuid, node=node)

    @staticmethod
    def _default_slot(example: str, is_preview: bool) -> Markup:
        content = text_or_markup(example)
        if is_preview:
            return content + EMPTY_SLOT_PLACEHOLDER
        return content

    @staticmethod
    def _wrap(uuid: str, markup: Markup, is_preview: bool) -> str:
        if not is_preview:
            return str(markup)
        return str(comment(f"tessera-start-{uuid}") + markup + comment(f"tessera-end-{uuid}"))

    def _placeholder(self, tree_node: TreeNode, is_preview: bool) -> RenderNode:
        message = PREVIEW_FAILURE_MESSAGE if is_preview else LIVE_FAILURE_MESSAGE
        markup = element("div", {"data-component-uuid": tree_node.uuid}, message)
        return RenderNode(
            uuid=tree_node.uuid,
            component_id=tree_node.component.component_id,
            element="placeholder",
            markup=self._wrap(tree_node.uuid, markup, is_preview),
            cache=CacheMetadata(tags={tree_node.component.cache_tag}),
            crashed=True,
        )
