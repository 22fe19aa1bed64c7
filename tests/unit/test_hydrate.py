"""Unit tests for hydrating flat instance lists into component trees."""

from __future__ import annotations

import pytest

from tessera.core.errors import StructuralError, UnknownComponent
from tessera.tree import ROOT_UUID, hydrate


@pytest.fixture
def instances(make_instance):
    # Deliberately unordered: children appear before their parent.
    return [
        make_instance("h2", "tpl.demo.heading", {"text": "Second"}, parent="s", slot="content"),
        make_instance("s", "tpl.demo.section"),
        make_instance("h1", "tpl.demo.heading", {"text": "First"}, parent="s", slot="content"),
        make_instance("c", "tpl.demo.card", {"title": "Card"}),
    ]


class TestHydrate:
    def test_roots_in_list_order(self, registry, context, instances):
        tree = hydrate(instances, registry, context)
        assert [root.uuid for root in tree.roots] == ["s", "c"]
        assert len(tree) == 4

    def test_children_in_list_order(self, registry, context, instances):
        """Siblings keep their relative order from the flat list."""
        section = hydrate(instances, registry, context).find("s")
        assert [child.uuid for child in section.slots["content"]] == ["h2", "h1"]

    def test_empty_slots_get_defaults(self, registry, context, instances):
        """Slots without children hold their first example, or an empty string."""
        tree = hydrate(instances, registry, context)
        assert tree.find("s").slots["aside"] == ""
        assert tree.find("c").slots["body"] == "<p>Body text</p>"

    def test_flatten_round_trip(self, registry, context, instances):
        """Flattening recovers the same instances, in pre-order."""
        tree = hydrate(instances, registry, context)
        flat = tree.flatten()
        assert [i.uuid for i in flat] == ["s", "h2", "h1", "c"]
        assert sorted(flat, key=lambda i: i.uuid) == sorted(instances, key=lambda i: i.uuid)

    def test_resolves_active_version(self, registry, context, instances):
        tree = hydrate(instances, registry, context)
        assert tree.find("c").version.version_id == registry.active_version("tpl.demo.card")

    def test_to_dict(self, registry, context, instances):
        """Nested output is keyed by the root uuid, then instance uuids."""
        data = hydrate(instances, registry, context).to_dict()
        roots = data[ROOT_UUID]
        assert list(roots) == ["s", "c"]
        section = roots["s"]
        assert section["component"] == "tpl.demo.section"
        assert section["version"] == registry.active_version("tpl.demo.section")
        assert list(section["slots"]["content"]) == ["h2", "h1"]
        assert section["slots"]["content"]["h1"]["props"] == {"text": "First"}
        assert section["slots"]["aside"] == ""
        assert roots["c"]["slots"]["body"] == "<p>Body text</p>"

    def test_empty_list(self, registry, context):
        tree = hydrate([], registry, context)
        assert tree.roots == []
        assert tree.to_dict() == {ROOT_UUID: {}}

    def test_structural_error(self, registry, context, make_instance):
        """Malformed trees are rejected before anything is built."""
        broken = [make_instance("h", "tpl.demo.heading", parent="ghost", slot="content")]
        with pytest.raises(StructuralError, match="Invalid component tree: 0.parent_uuid") as excinfo:
            hydrate(broken, registry, context)
        assert len(excinfo.value.violations) == 1

    def test_unknown_component(self, registry, context, make_instance):
        with pytest.raises(UnknownComponent, match="Unknown component: tpl.demo.nope"):
            hydrate([make_instance("x", "tpl.demo.nope")], registry, context)
