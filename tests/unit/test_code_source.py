"""Unit tests for the code-defined component source and its draft overlay."""

from __future__ import annotations

import pytest
from markupsafe import Markup

from tessera.core.errors import RenderError
from tessera.core.models import GLOBAL_IMPORTS, SCOPED_IMPORTS
from tessera.migration import FallbackController, UsageIndex
from tessera.registry import ComponentRegistry
from tessera.sources import CodeComponent, CodeComponentStore, CodeDefinedSource, create_source

COUNTER = "js.counter"


def code_source(registry, context, component_id: str = COUNTER) -> CodeDefinedSource:
    return create_source(*registry.resolve(component_id), context)


def render(source: CodeDefinedSource, is_preview: bool = False, stored: dict | None = None):
    explicit = source.explicit_inputs("u1", stored or {})
    return source.render(explicit, source.slot_definitions(), "u1", is_preview=is_preview)


class TestDiscovery:
    def test_candidates(self, context):
        candidates = {c.component_id: c for c in CodeDefinedSource.discover(context)}
        assert set(candidates) == {"js.button", "js.counter"}
        assert candidates["js.counter"].category == "@javascript"
        assert candidates["js.counter"].provider is None

    def test_unexposed_is_ineligible(self, context):
        context.code_components.get("button").status = False
        button = next(c for c in CodeDefinedSource.discover(context) if c.local_id == "button")
        assert button.reasons == ["Code component is not exposed."]

    def test_discover_from_disk(self, definitions_dir):
        """A ``draft`` mapping in the file overlays the live definition."""
        store, drafts = CodeComponentStore.discover(definitions_dir)
        live = store.get("counter")
        assert live.name == "Counter"
        assert "draft" not in live.js
        assert "draft" in drafts.get("counter").js
        assert drafts.get("counter").props == live.props


class TestLiveRender:
    def test_libraries(self, registry, context):
        """Own library first, then dependencies, then the shared global library."""
        node = render(code_source(registry, context))
        assert node.attachments.libraries == [
            "tessera/astro_island.counter",
            "tessera/astro_island.button",
            "tessera/asset_library.global",
        ]

    def test_import_map(self, registry, context):
        """Dependencies are scoped to the importing component's URL."""
        node = render(code_source(registry, context))
        counter = context.code_components.get("counter")
        button = context.code_components.get("button")
        import_map = node.attachments.import_maps
        assert import_map[GLOBAL_IMPORTS]["preact"] == "/tessera/lib/astro-hydration/dist/preact.module.js?0.0.0"
        assert import_map[SCOPED_IMPORTS] == {
            counter.component_url("/", False): {"@/components/button": button.component_url("/", False)}
        }

    def test_no_scopes_without_dependencies(self, registry, context):
        node = render(code_source(registry, context, "js.button"), stored={"label": "Go"})
        assert SCOPED_IMPORTS not in node.attachments.import_maps

    def test_live_url_is_content_addressed(self, registry, context):
        node = render(code_source(registry, context))
        counter = context.code_components.get("counter")
        assert node.props["component_url"] == f"/files/astro-island/{counter.js_hash}.js"

    def test_cacheability(self, registry, context):
        """Islands are tagged with their own config and that of their dependencies."""
        node = render(code_source(registry, context))
        assert node.cache.tags == {
            "config:tessera.js_component.counter",
            "config:tessera.js_component.button",
        }

    def test_live_ignores_drafts(self, registry, context):
        context.drafts.save(CodeComponent(machine_name="counter", name="Draft counter", js="draft"))
        node = render(code_source(registry, context))
        assert node.props["name"] == "Counter"
        assert "tessera__auto_save" not in node.cache.tags

    def test_markup(self, registry, context):
        """The island carries props as JSON and slots as templates."""
        source = code_source(registry, context, "js.button")
        node = render(source, stored={"label": "Go"})
        source.set_slots(node, {"icon": Markup("<i>*</i>")})
        markup = source.markup(node)
        assert markup.startswith('<astro-island uid="u1" component-url="/files/astro-island/')
        assert "&#34;label&#34;: &#34;Go&#34;" in markup
        assert '<template data-astro-template="icon"><i>*</i></template>' in markup
        assert markup.endswith("</astro-island>")

    def test_removed_component(self, registry, context):
        """Removing the definition breaks the component."""
        source = code_source(registry, context)
        context.code_components.remove("counter")
        assert source.is_broken()
        with pytest.raises(RenderError, match="Code component counter does not exist"):
            render(source)


class TestPreviewRender:
    @pytest.fixture
    def draft(self, context):
        draft = CodeComponent(
            machine_name="counter",
            name="Counter (draft)",
            js="export default function Counter() { return 1 }",
            props={"start": {"type": "integer", "examples": [0]}},
            dependencies=["button"],
        )
        context.drafts.save(draft)
        return draft

    def test_uses_draft(self, registry, context, draft):
        """Previews render the draft through the auto-save endpoint."""
        node = render(code_source(registry, context), is_preview=True)
        assert node.props["name"] == "Counter (draft)"
        assert node.props["component_url"] == "/api/config/auto-save/js/js_component/counter"
        assert node.props["props"]["tessera_is_preview"] is True

    def test_draft_libraries(self, registry, context, draft):
        node = render(code_source(registry, context), is_preview=True)
        assert node.attachments.libraries == [
            "tessera/astro_island.counter.draft",
            "tessera/astro_island.button.draft",
            "tessera/asset_library.global.draft",
        ]

    def test_preview_cache_tag(self, registry, context, draft):
        """Preview output is invalidated whenever a draft is saved."""
        node = render(code_source(registry, context), is_preview=True)
        assert "tessera__auto_save" in node.cache.tags

    def test_publish(self, context, draft):
        """Publishing promotes the draft to the live definition."""
        assert context.drafts.publish("counter", context.code_components) is draft
        assert context.code_components.get("counter") is draft
        assert context.drafts.get("counter") is None
        assert context.drafts.publish("counter", context.code_components) is None


class TestDependencies:
    def test_config_dependencies(self, registry, context):
        report = code_source(registry, context).calculate_dependencies()
        assert report.config == ["tessera.js_component.button", "tessera.js_component.counter"]
        assert report.module == []

    def test_cyclic_dependencies(self, context):
        """Components that import each other still render."""
        for name, other in (("ping", "pong"), ("pong", "ping")):
            context.code_components.add(
                CodeComponent(machine_name=name, name=name.title(), js=f"{name}()", dependencies=[other])
            )
        registry = ComponentRegistry()
        FallbackController(registry, context, UsageIndex()).regenerate()
        node = render(code_source(registry, context, "js.ping"))
        assert node.attachments.libraries == [
            "tessera/astro_island.ping",
            "tessera/astro_island.pong",
            "tessera/asset_library.global",
        ]
        scopes = node.attachments.import_maps[SCOPED_IMPORTS]
        ping = context.code_components.get("ping")
        assert "@/components/pong" in scopes[ping.component_url("/", False)]

    def test_missing_dependency_is_skipped(self, registry, context):
        context.code_components.remove("button")
        node = render(code_source(registry, context))
        assert node.attachments.libraries == ["tessera/astro_island.counter", "tessera/asset_library.global"]
