"""Template-fragment component source.

Definitions live in ``*.component.yml`` files::

    name: card
    provider: demo
    label: Card
    status: stable
    props:
      title: {type: string, title: Title, examples: [Hello]}
      href: {type: string, format: uri}
    required: [title]
    slots:
      body: {title: Body, examples: ["<p>Body text</p>"]}
    template: |
      <article class="card"><h2>{{ title }}</h2>{{ body }}</article>

The template may instead live next to the YAML file as ``<name>.html``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from markupsafe import Markup

from tessera.core.errors import RenderError
from tessera.core.models import DependencyReport, RenderNode
from tessera.sources.base import CandidateDefinition, ExplicitInput, SourceContext, register_source
from tessera.sources.generated import GeneratedFieldSource, generate_prop_settings

logger = logging.getLogger(__name__)

DEFINITION_GLOB = "*.component.yml"


@dataclass
class TemplateDefinition:
    """A template fragment with its declared props and slots."""

    provider: str
    name: str
    label: str
    template: str
    status: str = "stable"
    category: str = "Other"
    props: dict = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    slots: dict = field(default_factory=dict)
    no_ui: bool = False
    path: Path | None = None

    @property
    def local_id(self) -> str:
        return f"{self.provider}:{self.name}"

    @classmethod
    def from_yaml(cls, path: Path) -> TemplateDefinition:
        data = yaml.safe_load(path.read_text()) or {}
        name = data.get("name") or path.name[: -len(".component.yml")]
        template = data.get("template")
        if template is None:
            sibling = path.with_name(f"{name}.html")
            template = sibling.read_text() if sibling.exists() else ""
        return cls(
            provider=data.get("provider") or path.parent.name,
            name=name,
            label=data.get("label", name),
            template=template,
            status=data.get("status", "stable"),
            category=data.get("category", "Other"),
            props=data.get("props") or {},
            required=list(data.get("required") or []),
            slots=data.get("slots") or {},
            no_ui=bool(data.get("noUi", False)),
            path=path,
        )


class TemplateLibrary:
    """Template definitions keyed by ``provider:name``."""

    def __init__(self, definitions: Iterable[TemplateDefinition] = ()):
        self._definitions: dict[str, TemplateDefinition] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: TemplateDefinition) -> None:
        self._definitions[definition.local_id] = definition

    def remove(self, local_id: str) -> None:
        self._definitions.pop(local_id, None)

    def get(self, local_id: str) -> TemplateDefinition | None:
        return self._definitions.get(local_id)

    def all(self) -> list[TemplateDefinition]:
        return [self._definitions[k] for k in sorted(self._definitions)]

    @classmethod
    def discover(cls, directory: Path) -> TemplateLibrary:
        """Load every definition file below ``directory``."""
        library = cls()
        if not directory.is_dir():
            return library
        for path in sorted(directory.rglob(DEFINITION_GLOB)):
            try:
                library.add(TemplateDefinition.from_yaml(path))
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Skipping unreadable component definition %s: %s", path, e)
        return library


def component_id_for(definition: TemplateDefinition) -> str:
    return f"tpl.{definition.provider}.{definition.name}"


@register_source("tpl")
class TemplateFragmentSource(GeneratedFieldSource):
    """Renders a template fragment with props and slot content."""

    label = "Template fragment"

    @classmethod
    def discover(cls, context: SourceContext) -> Iterator[CandidateDefinition]:
        for definition in context.templates.all():
            settings, schema, reasons = generate_prop_settings(definition.props, definition.required)
            if definition.status == "obsolete":
                reasons.insert(0, 'Component has "obsolete" status')
            if definition.no_ui:
                reasons.insert(0, 'Component flagged "noUi".')
            yield CandidateDefinition(
                source=cls.source_id,
                local_id=definition.local_id,
                component_id=component_id_for(definition),
                label=definition.label,
                provider=definition.provider,
                category=definition.category,
                settings=settings,
                slot_definitions=definition.slots,
                schema=schema,
                reasons=reasons,
            )

    @property
    def definition(self) -> TemplateDefinition | None:
        return self.context.templates.get(self.component.source_local_id)

    def render(
        self,
        inputs: ExplicitInput,
        slot_definitions: dict,
        uuid: str,
        is_preview: bool = False,
    ) -> RenderNode:
        if self.definition is None:
            raise RenderError(f"Template {self.component.source_local_id} is not available")
        return RenderNode(
            uuid=uuid,
            component_id=self.component.component_id,
            element="template",
            props={k: v for k, v in inputs.values.items() if k in self.prop_field_definitions},
            cache=inputs.cache,
        )

    def markup(self, node: RenderNode) -> str:
        definition = self.definition
        if definition is None:
            raise RenderError(f"Template {self.component.source_local_id} is not available")
        template = self.context.environment.from_string(definition.template)
        variables = {**node.props, **{name: Markup(html) for name, html in node.slots.items()}}
        return template.render(**variables)

    def calculate_dependencies(self) -> DependencyReport:
        report = DependencyReport(module=[self.component.provider] if self.component.provider else [])
        return report.merge(self.prop_dependencies())

    def source_specific_component_id(self) -> str:
        return self.component.source_local_id

    def is_broken(self) -> bool:
        return self.definition is None
