"""Block component source.

Blocks wrap a preconfigured capability: their inputs are an opaque settings
bag merged over the plugin's default configuration, not a prop schema.
Plugins register themselves with ``@register_block``.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING, ClassVar

from markupsafe import Markup, escape

from tessera.core.errors import RenderError
from tessera.core.markup import element
from tessera.core.models import CacheMetadata, DependencyReport, RenderNode
from tessera.sources.base import (
    CandidateDefinition,
    ComponentSource,
    ExplicitInput,
    SourceContext,
    register_source,
)

if TYPE_CHECKING:
    from tessera.props.host import HostEntity


class BlockPlugin(ABC):
    """Abstract base class for block plugins."""

    plugin_id: ClassVar[str] = ""
    label: ClassVar[str] = ""
    provider: ClassVar[str] = "system"
    category: ClassVar[str] = "Block"
    requires_context: ClassVar[bool] = False

    def default_configuration(self) -> dict:
        return {}

    def access(self, settings: dict) -> bool:
        return True

    @abstractmethod
    def build(self, settings: dict) -> str | None:
        """Return block content markup, or None when there is nothing to show."""
        ...

    def cacheability(self, settings: dict) -> CacheMetadata:
        return CacheMetadata()

    def dependencies(self, settings: dict) -> DependencyReport:
        return DependencyReport()


# Block plugin registry
_BLOCKS: dict[str, type[BlockPlugin]] = {}


def register_block(plugin_id: str):
    """Decorator to register a block plugin class."""

    def wrapper(cls):
        cls.plugin_id = plugin_id
        _BLOCKS[plugin_id] = cls
        return cls

    return wrapper


def unregister_block(plugin_id: str) -> type[BlockPlugin] | None:
    """Remove a block plugin, e.g. when the module providing it goes away."""
    return _BLOCKS.pop(plugin_id, None)


def get_block(plugin_id: str) -> BlockPlugin | None:
    cls = _BLOCKS.get(plugin_id)
    return cls() if cls is not None else None


def list_blocks() -> list[str]:
    return sorted(_BLOCKS)


def component_id_for(plugin_id: str) -> str:
    return "block." + plugin_id.replace(":", ".")


@register_source("block")
class BlockSource(ComponentSource):
    """Renders a block plugin with an opaque settings bag."""

    label = "Block"

    @classmethod
    def discover(cls, context: SourceContext) -> Iterator[CandidateDefinition]:
        for plugin_id in list_blocks():
            plugin = get_block(plugin_id)
            reasons = []
            if plugin.requires_context:
                reasons.append("Block plugins that require context values are not supported.")
            default_settings = {
                "id": plugin_id,
                "label": plugin.label or plugin_id,
                "label_display": "0",
                "provider": plugin.provider,
                **plugin.default_configuration(),
            }
            yield CandidateDefinition(
                source=cls.source_id,
                local_id=plugin_id,
                component_id=component_id_for(plugin_id),
                label=plugin.label or plugin_id,
                provider=plugin.provider,
                category=plugin.category,
                settings={"default_settings": default_settings},
                reasons=reasons,
            )

    @property
    def plugin_id(self) -> str:
        return self.component.source_local_id

    @property
    def default_settings(self) -> dict:
        return self.settings.get("default_settings", {})

    def default_inputs(self) -> dict:
        return copy.deepcopy(self.default_settings)

    def explicit_inputs(
        self,
        uuid: str,
        stored: dict,
        host: HostEntity | None = None,
    ) -> ExplicitInput:
        return ExplicitInput(values={**copy.deepcopy(self.default_settings), **stored}, opaque=True)

    def hydrate(self, uuid: str, stored: dict, host: HostEntity | None = None) -> dict:
        return {"settings": self.explicit_inputs(uuid, stored, host).values}

    def validate_inputs(
        self,
        stored: dict,
        uuid: str,
        allow_dynamic: bool = True,
        host: HostEntity | None = None,
    ) -> list[tuple[str, str, str]]:
        if not isinstance(stored, dict):
            return [("inputs", "input", "Block settings must be a mapping.")]
        if "id" in stored and stored["id"] != self.plugin_id:
            return [("id", "input", f"Block settings belong to {stored['id']}, not {self.plugin_id}.")]
        return []

    def render(
        self,
        inputs: ExplicitInput,
        slot_definitions: dict,
        uuid: str,
        is_preview: bool = False,
    ) -> RenderNode:
        plugin = get_block(self.plugin_id)
        if plugin is None:
            raise RenderError(f"Block plugin {self.plugin_id} is not available")
        settings = inputs.values
        node = RenderNode(
            uuid=uuid,
            component_id=self.component.component_id,
            element="block",
            props=settings,
            cache=plugin.cacheability(settings).merge(inputs.cache),
        )
        if not plugin.access(settings):
            node.cache.add_contexts("user.permissions")
            return node
        content = plugin.build(settings)
        if content:
            node.props = {**settings, "content": Markup(content)}
        return node

    def markup(self, node: RenderNode) -> str:
        content = node.props.get("content")
        if not content:
            return ""
        title = ""
        if str(node.props.get("label_display", "0")) not in ("0", "", "False"):
            title = Markup("<h2>{}</h2>").format(node.props.get("label", ""))
        provider = node.props.get("provider", "system")
        css_id = self.plugin_id.replace(":", "-").replace("_", "-")
        return element(
            "div",
            {"id": f"block-{node.uuid}", "class": f"block block-{provider} block-{css_id}"},
            title + content,
        )

    def calculate_dependencies(self) -> DependencyReport:
        report = DependencyReport(module=[self.default_settings.get("provider", "system")])
        plugin = get_block(self.plugin_id)
        if plugin is not None:
            report = report.merge(plugin.dependencies(self.default_settings))
        return report

    def referenced_plugin_class(self) -> str | None:
        cls = _BLOCKS.get(self.plugin_id)
        if cls is None:
            return None
        return f"{cls.__module__}.{cls.__qualname__}"

    def is_broken(self) -> bool:
        return self.plugin_id not in _BLOCKS


# ---------------------------------------------------------------------------
# Built-in block plugins
# ---------------------------------------------------------------------------


@register_block("system_branding_block")
class SiteBrandingBlock(BlockPlugin):
    """Site name and logo."""

    label = "Site branding"

    def default_configuration(self) -> dict:
        return {"use_site_logo": True, "use_site_name": True, "site_name": "Tessera", "logo": ""}

    def build(self, settings: dict) -> str | None:
        parts = []
        if settings.get("use_site_logo") and settings.get("logo"):
            parts.append(Markup('<img src="{}" alt="Home">').format(settings["logo"]))
        if settings.get("use_site_name") and settings.get("site_name"):
            parts.append(Markup('<a href="/" rel="home">{}</a>').format(settings["site_name"]))
        return Markup("").join(parts) or None

    def cacheability(self, settings: dict) -> CacheMetadata:
        return CacheMetadata(tags={"config:system.site"})


@register_block("system_powered_by_block")
class PoweredByBlock(BlockPlugin):
    label = "Powered by Tessera"

    def build(self, settings: dict) -> str | None:
        return Markup("<span>Powered by {}</span>").format(escape("Tessera"))


@register_block("page_title_block")
class PageTitleBlock(BlockPlugin):
    label = "Page title"
    requires_context = True

    def build(self, settings: dict) -> str | None:
        return None
