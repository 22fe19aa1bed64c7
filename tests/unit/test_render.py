"""Unit tests for tree rendering, failure isolation and cache bubbling."""

from __future__ import annotations

import logging

import pytest

from tessera.core.logging import RenderLogger
from tessera.migration import FallbackController, UsageIndex
from tessera.props import HostEntity
from tessera.tree import (
    LIVE_FAILURE_MESSAGE,
    PREVIEW_FAILURE_MESSAGE,
    TreeRenderer,
    hydrate,
    rendering_context,
)


@pytest.fixture
def renderer(registry, context):
    return TreeRenderer(registry, context)


@pytest.fixture
def with_broken_child(make_instance):
    return [
        make_instance("s", "tpl.demo.section"),
        make_instance("h1", "tpl.demo.heading", {"text": "First"}, parent="s", slot="content"),
        make_instance("b", "tpl.demo.broken", parent="s", slot="content"),
        make_instance("h2", "tpl.demo.heading", {"text": "Second"}, parent="s", slot="aside"),
    ]


class TestRender:
    def test_nested_markup(self, renderer, make_instance):
        """Children render into their parent's slots, in order."""
        result = renderer.render([
            make_instance("s", "tpl.demo.section"),
            make_instance("h1", "tpl.demo.heading", {"text": "First"}, parent="s", slot="content"),
            make_instance("h2", "tpl.demo.heading", {"text": "Second"}, parent="s", slot="content"),
        ])
        assert result.success
        assert result.markup == "<section><h1>First</h1><h1>Second</h1><aside></aside></section>"

    def test_multiple_roots(self, renderer, make_instance):
        result = renderer.render([
            make_instance("a", "tpl.demo.heading", {"text": "A"}),
            make_instance("b", "tpl.demo.heading", {"text": "B"}),
        ])
        assert result.markup == "<h1>A</h1><h1>B</h1>"
        assert [node.uuid for node in result.nodes] == ["a", "b"]

    def test_accepts_hydrated_tree(self, renderer, registry, context, make_instance):
        tree = hydrate([make_instance("a", "tpl.demo.heading")], registry, context)
        assert renderer.render(tree).markup == "<h1>Heading</h1>"

    def test_default_slot_content(self, renderer, make_instance):
        """Empty slots render their example content."""
        result = renderer.render([make_instance("s", "tpl.demo.section")])
        assert result.markup == "<section>Default content<aside></aside></section>"

    def test_default_markup_slot(self, renderer, make_instance):
        result = renderer.render([make_instance("c", "tpl.demo.card", {"title": "T"})])
        assert result.markup == '<article class="card"><h2>T</h2><p>Body text</p></article>'


class TestFailureIsolation:
    def test_failed_node_is_replaced(self, renderer, with_broken_child):
        """Siblings and ancestors of a failing node keep rendering."""
        result = renderer.render(with_broken_child)
        assert result.markup == (
            "<section><h1>First</h1>"
            f'<div data-component-uuid="b">{LIVE_FAILURE_MESSAGE}</div>'
            "<aside><h1>Second</h1></aside></section>"
        )
        assert not result.success
        [failure] = result.failures
        assert failure.uuid == "b"
        assert failure.component_id == "tpl.demo.broken"
        assert type(failure.error).__name__ == "UndefinedError"

    def test_failure_is_logged(self, renderer, with_broken_child, caplog):
        with caplog.at_level(logging.ERROR, logger="tessera.tree.render"):
            renderer.render(with_broken_child)
        expected = "UndefinedError occurred during rendering of component b in component tree, field components"
        assert expected in caplog.text

    def test_rendering_context_names_host(self, renderer, with_broken_child, caplog):
        """Log messages identify the host entity and field."""
        host = HostEntity(entity_type="node", bundle="page", id="5", label="Home")
        with caplog.at_level(logging.ERROR, logger="tessera.tree.render"):
            renderer.render(with_broken_child, host=host, field_name="layout")
        assert "in Node Home (5), field layout" in caplog.text
        assert rendering_context(None, "layout") == "component tree, field layout"

    def test_failed_root(self, renderer, make_instance):
        """A failing root does not stop later roots."""
        result = renderer.render([
            make_instance("b", "tpl.demo.broken"),
            make_instance("h", "tpl.demo.heading"),
        ])
        assert result.markup == f'<div data-component-uuid="b">{LIVE_FAILURE_MESSAGE}</div><h1>Heading</h1>'

    def test_failed_parent_drops_child_failures(self, renderer, registry, context, with_broken_child, monkeypatch):
        """Failures inside a parent that itself fails are not reported separately."""
        tree = hydrate(with_broken_child, registry, context)

        def fail(node):
            raise RuntimeError("section markup failed")

        monkeypatch.setattr(tree.roots[0].source, "markup", fail)
        result = renderer.render(tree)
        assert [f.uuid for f in result.failures] == ["s"]
        assert result.markup == f'<div data-component-uuid="s">{LIVE_FAILURE_MESSAGE}</div>'

    def test_placeholder_keeps_component_tag(self, renderer, with_broken_child):
        result = renderer.render(with_broken_child)
        assert "config:component.tpl.demo.broken" in result.cache.tags

    def test_preview_message(self, renderer, make_instance):
        result = renderer.render([make_instance("b", "tpl.demo.broken")], is_preview=True)
        assert result.markup == (
            "<!-- tessera-start-b -->"
            f'<div data-component-uuid="b">{PREVIEW_FAILURE_MESSAGE}</div>'
            "<!-- tessera-end-b -->"
        )

    def test_failures_to_dict(self, renderer, with_broken_child):
        data = renderer.render(with_broken_child).to_dict()
        assert data["failures"][0]["uuid"] == "b"
        assert data["failures"][0]["error"] == "UndefinedError"


class TestPreview:
    def test_annotations(self, renderer, make_instance):
        """Preview output marks every instance and slot boundary."""
        result = renderer.render(
            [
                make_instance("s", "tpl.demo.section"),
                make_instance("h", "tpl.demo.heading", {"text": "Hi"}, parent="s", slot="content"),
            ],
            is_preview=True,
        )
        assert result.markup == (
            "<!-- tessera-start-s --><section>"
            "<!-- tessera-slot-start-s/content -->"
            "<!-- tessera-start-h --><h1>Hi</h1><!-- tessera-end-h -->"
            "<!-- tessera-slot-end-s/content -->"
            "<aside><!-- tessera-slot-start-s/aside -->"
            '<div class="tessera--slot-empty-placeholder"></div>'
            "<!-- tessera-slot-end-s/aside --></aside>"
            "</section><!-- tessera-end-s -->"
        )

    def test_default_slot_gets_placeholder(self, renderer, make_instance):
        markup = renderer.render([make_instance("s", "tpl.demo.section")], is_preview=True).markup
        assert "Default content<div class=\"tessera--slot-empty-placeholder\"></div>" in markup


class TestCacheability:
    def test_component_tags(self, renderer, make_instance):
        """Every rendered instance adds its component's config tag."""
        result = renderer.render([
            make_instance("s", "tpl.demo.section"),
            make_instance("h", "tpl.demo.heading", parent="s", slot="content"),
        ])
        assert result.cache.tags == {
            "config:component.tpl.demo.section",
            "config:component.tpl.demo.heading",
        }
        assert result.cache.to_dict()["max-age"] == "permanent"

    def test_descendant_cacheability_bubbles(self, renderer, make_instance):
        """Ancestors carry the union of descendant tags and contexts and the minimum max-age."""
        result = renderer.render([
            make_instance("s", "tpl.demo.section"),
            make_instance("g", "block.test_greeting", {"name": "Ada"}, parent="s", slot="aside"),
        ])
        assert "<aside><div id=\"block-g\"" in result.markup
        section = result.nodes[0]
        assert section.cache.max_age == 300
        assert section.cache.contexts == {"languages"}
        assert section.cache.tags >= {
            "config:greeting",
            "config:component.block.test_greeting",
            "config:component.tpl.demo.section",
        }
        assert result.cache.max_age == 300

    def test_dynamic_props_vary_by_permissions(self, renderer, make_instance):
        host = HostEntity(entity_type="node", bundle="article", id="9", fields={"title": [{"value": "Live"}]})
        inputs = {"text": {"sourceType": "dynamic", "expression": "entity:node:article/title/value"}}
        result = renderer.render([make_instance("h", "tpl.demo.heading", inputs)], host=host)
        assert result.markup == "<h1>Live</h1>"
        assert "node:9" in result.cache.tags
        assert result.cache.contexts == {"user.permissions"}

    def test_island_attachments_bubble(self, renderer, make_instance):
        result = renderer.render([
            make_instance("s", "tpl.demo.section"),
            make_instance("b", "js.button", {"label": "Go"}, parent="s", slot="content"),
        ])
        assert "tessera/astro_island.button" in result.attachments.libraries
        assert result.nodes[0].attachments.libraries == result.attachments.libraries


class TestVersionPinning:
    def test_pinned_instance_renders_old_version(self, registry, context, make_instance):
        """Instances pinned to an older version keep rendering with it."""
        v1 = registry.active_version("tpl.demo.heading")
        context.templates.get("demo:heading").props["text"]["examples"] = ["Updated"]
        FallbackController(registry, context, UsageIndex()).regenerate()
        v2 = registry.active_version("tpl.demo.heading")
        assert v1 != v2

        result = TreeRenderer(registry, context).render([
            make_instance("old", "tpl.demo.heading", version=v1),
            make_instance("new", "tpl.demo.heading"),
        ])
        assert result.markup == "<h1>Heading</h1><h1>Updated</h1>"


class TestRenderLogger:
    def test_events(self, registry, context, with_broken_child, tmp_path):
        """Render events are recorded per node."""
        render_logger = RenderLogger(logs_dir=tmp_path / "logs")
        TreeRenderer(registry, context, render_logger=render_logger).render(with_broken_child)
        render_logger.close()
        log = render_logger.render_log
        assert log.context == "component tree, field components"
        assert log.rendered == 3
        assert log.failed == 1
        events = [line for line in render_logger.log_path.read_text().splitlines() if line]
        assert len(events) == 6
