"""Shared test fixtures for Tessera."""

from __future__ import annotations

import textwrap

import pytest
from markupsafe import Markup

from tessera.config import Settings, reset_settings
from tessera.core.models import CacheMetadata, ComponentInstance
from tessera.db.engine import reset_engine
from tessera.migration import FallbackController, UsageIndex
from tessera.registry import ComponentRegistry
from tessera.sources import (
    BlockPlugin,
    CodeComponent,
    CodeComponentStore,
    DraftStore,
    SourceContext,
    TemplateDefinition,
    TemplateLibrary,
    register_block,
)
from tessera.sources.block import unregister_block

CARD_TEMPLATE = (
    '<article class="card"><h2>{{ title }}</h2>'
    '{% if href %}<a href="{{ href }}">more</a>{% endif %}{{ body }}</article>'
)


def demo_templates() -> list[TemplateDefinition]:
    """Fresh template definitions; tests are free to mutate them."""
    return [
        TemplateDefinition(
            provider="demo",
            name="card",
            label="Card",
            template=CARD_TEMPLATE,
            props={
                "title": {"type": "string", "title": "Title", "examples": ["Hello"]},
                "href": {"type": "string", "format": "uri", "title": "Link"},
            },
            required=["title"],
            slots={"body": {"title": "Body", "examples": ["<p>Body text</p>"]}},
        ),
        TemplateDefinition(
            provider="demo",
            name="heading",
            label="Heading",
            template="<h1>{{ text }}</h1>",
            props={"text": {"type": "string", "title": "Text", "examples": ["Heading"]}},
            required=["text"],
        ),
        TemplateDefinition(
            provider="demo",
            name="section",
            label="Section",
            template="<section>{{ content }}<aside>{{ aside }}</aside></section>",
            slots={
                "content": {"title": "Content", "examples": ["Default content"]},
                "aside": {"title": "Aside"},
            },
        ),
        TemplateDefinition(
            provider="demo",
            name="broken",
            label="Broken",
            # Calling an undefined attribute fails at render time.
            template="<p>{{ title.explode() }}</p>",
            props={"title": {"type": "string", "examples": ["Boom"]}},
            required=["title"],
        ),
    ]


def demo_code_components() -> list[CodeComponent]:
    return [
        CodeComponent(
            machine_name="button",
            name="Button",
            js="export default function Button() {}",
            props={"label": {"type": "string", "examples": ["Click"]}},
            required=["label"],
        ),
        CodeComponent(
            machine_name="counter",
            name="Counter",
            js="export default function Counter() {}",
            props={"start": {"type": "integer", "examples": [0]}},
            dependencies=["button"],
        ),
    ]


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Settings and database engines are cached per process."""
    reset_settings()
    reset_engine()
    yield
    reset_settings()
    reset_engine()


@pytest.fixture
def greeting_block():
    """A block plugin tests can unregister to simulate its module going away."""

    @register_block("test_greeting")
    class GreetingBlock(BlockPlugin):
        label = "Greeting"
        provider = "greeting"

        def default_configuration(self) -> dict:
            return {"name": "World"}

        def build(self, settings: dict) -> str | None:
            return Markup("<p>Hello {}</p>").format(settings["name"])

        def cacheability(self, settings: dict) -> CacheMetadata:
            return CacheMetadata(tags={"config:greeting"}, contexts={"languages"}, max_age=300)

    yield GreetingBlock
    unregister_block("test_greeting")


@pytest.fixture
def context():
    return SourceContext(
        templates=TemplateLibrary(demo_templates()),
        code_components=CodeComponentStore(demo_code_components()),
        drafts=DraftStore(),
    )


@pytest.fixture
def registry(context, greeting_block):
    """Registry holding every eligible component discovered from ``context``."""
    registry = ComponentRegistry()
    FallbackController(registry, context, UsageIndex()).regenerate()
    return registry


@pytest.fixture
def make_instance():
    def _make(uuid, component_id, inputs=None, parent=None, slot=None, version=None):
        return ComponentInstance(
            uuid=uuid,
            component_id=component_id,
            inputs=inputs if inputs is not None else {},
            component_version=version,
            parent_uuid=parent,
            slot=slot,
        )

    return _make


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage_dir=tmp_path / ".tessera",
        definitions_dir=tmp_path / "components",
    )


@pytest.fixture
def definitions_dir(tmp_path):
    """On-disk definitions: one template fragment and one code component."""
    root = tmp_path / "components"
    (root / "demo").mkdir(parents=True)
    (root / "demo" / "card.component.yml").write_text(textwrap.dedent("""\
        name: card
        provider: demo
        label: Card
        props:
          title: {type: string, title: Title, examples: [Hello]}
        required: [title]
        slots:
          body: {title: Body, examples: ["<p>Body text</p>"]}
    """))
    (root / "demo" / "card.html").write_text('<article class="card"><h2>{{ title }}</h2>{{ body }}</article>')
    (root / "counter.code.yml").write_text(textwrap.dedent("""\
        name: Counter
        js: "export default function Counter() {}"
        props:
          start: {type: integer, examples: [0]}
        draft:
          js: "export default function Counter() { /* draft */ }"
    """))
    return root
