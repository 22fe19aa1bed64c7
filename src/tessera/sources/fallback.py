"""Fallback component source.

Stands in for a component whose real source has disappeared. Stored inputs
are passed through untouched and never interpreted, so nothing is lost
while the component is broken; descendants in slots keep rendering.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from markupsafe import Markup

from tessera.core.markup import element
from tessera.core.models import DependencyReport, RenderNode
from tessera.registry.components import FALLBACK_SOURCE, FALLBACK_VERSION
from tessera.sources.base import (
    CandidateDefinition,
    ComponentSource,
    ExplicitInput,
    SourceContext,
    default_slot_values,
    register_source,
)

if TYPE_CHECKING:
    from tessera.props.host import HostEntity

WARNING = "Component has been deleted. Copy values to new component."


@register_source(FALLBACK_SOURCE)
class FallbackSource(ComponentSource):
    """Renders a neutral placeholder around any slot content."""

    label = "Fallback"

    @classmethod
    def discover(cls, context: SourceContext) -> Iterator[CandidateDefinition]:
        return iter(())

    def slot_definitions(self) -> dict:
        # Pinned historical versions keep their own slots; the fallback
        # version itself has none and uses the last active version's.
        if self.version.version_id != FALLBACK_VERSION:
            return self.version.slot_definitions
        return self.component.fallback_metadata.get("slot_definitions", {})

    def explicit_input_definitions(self) -> dict:
        return {}

    def explicit_inputs(
        self,
        uuid: str,
        stored: dict,
        host: HostEntity | None = None,
    ) -> ExplicitInput:
        return ExplicitInput(values=stored, opaque=True)

    def hydrate(self, uuid: str, stored: dict, host: HostEntity | None = None) -> dict:
        return {"inputs": stored, "slots": default_slot_values(self.slot_definitions())}

    def input_to_client_model(self, explicit: ExplicitInput) -> dict:
        return {"resolved": explicit.values, "warning": WARNING}

    def client_model_to_input(self, uuid: str, client_model: dict, host: HostEntity | None = None) -> dict:
        return client_model.get("resolved", {})

    def render(
        self,
        inputs: ExplicitInput,
        slot_definitions: dict,
        uuid: str,
        is_preview: bool = False,
    ) -> RenderNode:
        return RenderNode(uuid=uuid, component_id=self.component.component_id, element="fallback")

    def markup(self, node: RenderNode) -> str:
        content = Markup("").join(Markup(html) for html in node.slots.values())
        return element("div", {"data-fallback": node.uuid}, content)

    def calculate_dependencies(self) -> DependencyReport:
        return DependencyReport()

    def source_specific_component_id(self) -> str:
        return ""
