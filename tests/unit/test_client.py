"""Unit tests for converting trees to and from the editor's client model."""

from __future__ import annotations

import pytest

from tessera.core.errors import InvalidExpression, InvalidInput, MissingHostContext, UnknownVersion
from tessera.migration import FallbackController, UsageIndex
from tessera.props import AccessPolicy, HostEntity
from tessera.tree import client_to_instances, hydrate, tree_to_client


@pytest.fixture
def instances(make_instance):
    return [
        make_instance("s", "tpl.demo.section"),
        make_instance("h", "tpl.demo.heading", {"text": "First"}, parent="s", slot="content"),
        make_instance("c", "tpl.demo.card", {"title": "Card", "href": "https://example.com"}),
    ]


class TestTreeToClient:
    def test_layout(self, registry, context, instances):
        client = tree_to_client(hydrate(instances, registry, context))
        section, card = client["layout"]
        assert section["uuid"] == "s"
        assert section["nodeType"] == "component"
        assert section["type"] == f"tpl.demo.section@{registry.active_version('tpl.demo.section')}"
        assert section["name"] == "Section"
        content, aside = section["slots"]
        assert content["id"] == "s/content"
        assert content["nodeType"] == "slot"
        assert [child["uuid"] for child in content["components"]] == ["h"]
        assert aside["components"] == []
        assert card["slots"][0]["name"] == "body"

    def test_model(self, registry, context, instances):
        """Static values equal to the resolved value are left to ``resolved``."""
        model = tree_to_client(hydrate(instances, registry, context))["model"]
        assert set(model) == {"s", "h", "c"}
        assert model["c"]["resolved"] == {"title": "Card", "href": "https://example.com"}
        assert model["c"]["source"]["href"] == {
            "sourceType": "static:field_item:link",
            "expression": "field_type:link/uri",
        }
        assert model["s"] == {"source": {}, "resolved": {}}

    def test_block_model_is_opaque(self, registry, context, make_instance):
        tree = hydrate([make_instance("b", "block.system_branding_block", {"site_name": "Acme"})], registry, context)
        model = tree_to_client(tree)["model"]["b"]
        assert model["site_name"] == "Acme"
        assert model["id"] == "system_branding_block"


class TestClientToInstances:
    def test_round_trip(self, registry, context, instances):
        """Saving the client model gives back the stored instances, pinned to their version."""
        client = tree_to_client(hydrate(instances, registry, context))
        saved = client_to_instances(client, registry, context)
        assert [(i.uuid, i.parent_uuid, i.slot) for i in saved] == [
            ("s", None, None),
            ("h", "s", "content"),
            ("c", None, None),
        ]
        by_uuid = {i.uuid: i for i in saved}
        assert by_uuid["h"].inputs == {"text": "First"}
        assert by_uuid["c"].inputs == {"title": "Card", "href": "https://example.com"}
        assert by_uuid["c"].component_version == registry.active_version("tpl.demo.card")

    def test_dynamic_source_kept(self, registry, context, make_instance):
        host = HostEntity(entity_type="node", bundle="article", id="1", fields={"title": [{"value": "T"}]})
        dynamic = {"sourceType": "dynamic", "expression": "entity:node:article/title/value"}
        tree = hydrate([make_instance("h", "tpl.demo.heading", {"text": dynamic})], registry, context)
        client = tree_to_client(tree, host)
        assert client["model"]["h"]["resolved"] == {"text": "T"}
        [saved] = client_to_instances(client, registry, context, host)
        assert saved.inputs == {"text": dynamic}

    @pytest.mark.parametrize(
        "fields, access",
        [
            (
                {"field_link": [{"uri": "https://example.com"}]},
                AccessPolicy(field_permissions={"field_link": "view links"}),
            ),
            ({"field_link": []}, AccessPolicy()),
        ],
        ids=["access-denied", "empty-field"],
    )
    def test_optional_dynamic_binding_kept(self, registry, context, make_instance, fields, access):
        """Optional host bindings survive a save even when they resolve to nothing for this viewer."""
        host = HostEntity(entity_type="node", bundle="article", id="1", fields=fields, access=access)
        link = {"sourceType": "dynamic", "expression": "entity:node:article/field_link/uri"}
        tree = hydrate([make_instance("c", "tpl.demo.card", {"title": "T", "href": link})], registry, context)
        client = tree_to_client(tree, host)
        [saved] = client_to_instances(client, registry, context, host)
        assert saved.inputs == {"title": "T", "href": link}

    def test_dynamic_source_needs_host(self, registry, context):
        dynamic = {"sourceType": "dynamic", "expression": "entity:node:article/title/value"}
        client = {
            "layout": [{"uuid": "h", "type": "tpl.demo.heading"}],
            "model": {"h": {"source": {"text": dynamic}, "resolved": {}}},
        }
        with pytest.raises(MissingHostContext):
            client_to_instances(client, registry, context)
        page = HostEntity(entity_type="node", bundle="page", id="2")
        with pytest.raises(InvalidExpression, match="does not apply to node:page"):
            client_to_instances(client, registry, context, page)

    def test_type_without_version(self, registry, context):
        """A bare component id resolves to the active version."""
        client = {"layout": [{"uuid": "h", "type": "tpl.demo.heading", "slots": []}], "model": {}}
        [saved] = client_to_instances(client, registry, context)
        assert saved.component_version == registry.active_version("tpl.demo.heading")
        assert saved.inputs == {}

    def test_unknown_version(self, registry, context):
        client = {"layout": [{"uuid": "h", "type": "tpl.demo.heading@deadbeefdeadbeef"}], "model": {}}
        with pytest.raises(UnknownVersion):
            client_to_instances(client, registry, context)

    def test_unexpected_node_type(self, registry, context):
        client = {"layout": [{"uuid": "x", "nodeType": "slot", "type": "tpl.demo.heading"}]}
        with pytest.raises(InvalidInput, match="Unexpected layout node type: slot"):
            client_to_instances(client, registry, context)

    def test_broken_component_keeps_real_version(self, registry, context, instances):
        """Instances saved while their component is on fallback keep their inputs and real version."""
        real = registry.active_version("tpl.demo.card")
        usage = UsageIndex.from_trees({"node:1": instances})
        FallbackController(registry, context, usage).break_component("tpl.demo.card")

        client = tree_to_client(hydrate(instances, registry, context))
        card = next(node for node in client["layout"] if node["uuid"] == "c")
        assert card["type"] == "tpl.demo.card@fallback"
        saved = {i.uuid: i for i in client_to_instances(client, registry, context)}
        assert saved["c"].inputs == {"title": "Card", "href": "https://example.com"}
        assert saved["c"].component_version == real
