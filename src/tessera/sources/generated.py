"""Shared behaviour for component sources whose inputs are generated from a prop schema.

Settings of these sources hold one prop field definition per prop::

    {"prop_field_definitions": {
        "title": {
            "field_type": "string",
            "field_widget": "string_textfield",
            "expression": "field_type:string/value",
            "default_value": "Hello",
        },
    }}

Stored instance inputs map prop names either to a bare literal (a static
source collapsed onto its default definition) or to a full descriptor.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from tessera.core.errors import (
    InvalidExpression,
    MissingHostContext,
    PropSourceError,
    UnknownAdapter,
)
from tessera.core.models import CacheMetadata, DependencyReport
from tessera.props.shapes import prop_field_definition
from tessera.props.sources import (
    PropSource,
    StaticPropSource,
    is_descriptor,
    parse_prop_source,
)
from tessera.sources.base import ComponentSource, ExplicitInput, default_slot_values

if TYPE_CHECKING:
    from tessera.props.host import HostEntity

logger = logging.getLogger(__name__)


def generate_prop_settings(props: dict, required: list[str]) -> tuple[dict, dict, list[str]]:
    """Derive prop field definitions and explicit input definitions from a prop schema.

    Returns (settings, schema, reasons); reasons explain why the schema cannot
    be exposed as a component.
    """
    definitions: dict[str, dict] = {}
    schema: dict[str, dict] = {}
    reasons: list[str] = []
    for name, shape in props.items():
        examples = shape.get("examples") or []
        if name in required and not examples:
            reasons.append(f'Prop "{name}" is required, but does not have example value')
        definition = prop_field_definition(shape, examples)
        if definition is None:
            reasons.append(f'No field type is available for prop "{name}"')
            continue
        definitions[name] = definition
        shape_only = {k: v for k, v in shape.items() if k not in ("title", "description", "examples")}
        schema[name] = {"required": name in required, "shape": shape_only}
    return {"prop_field_definitions": definitions}, schema, reasons


class GeneratedFieldSource(ComponentSource):
    """Base class for template-fragment and code-defined sources."""

    @property
    def prop_field_definitions(self) -> dict[str, dict]:
        return self.settings.get("prop_field_definitions", {})

    def _is_required(self, prop: str) -> bool:
        return bool(self.explicit_input_definitions().get(prop, {}).get("required"))

    # -- Collapse / uncollapse --

    def uncollapse(self, prop: str, stored: Any) -> PropSource:
        """Full prop source for a stored input, expanding collapsed literals."""
        if is_descriptor(stored):
            return parse_prop_source(stored)
        definition = self.prop_field_definitions.get(prop)
        if definition is None:
            raise PropSourceError(f"Component {self.component.component_id} has no prop `{prop}`")
        return StaticPropSource.from_definition(definition, stored)

    def collapse(self, prop: str, source: PropSource) -> Any:
        """Stored form of a prop source: the bare value when it matches the default shape."""
        definition = self.prop_field_definitions.get(prop)
        if (
            definition is not None
            and isinstance(source, StaticPropSource)
            and source.matches_definition(definition)
        ):
            return source.value
        return source.to_dict()

    # -- Inputs --

    def default_inputs(self) -> dict:
        return {
            prop: copy.deepcopy(definition["default_value"])
            for prop, definition in self.prop_field_definitions.items()
            if definition.get("default_value") is not None
        }

    def _with_required_defaults(self, stored: dict) -> dict:
        merged = dict(stored)
        for prop, definition in self.prop_field_definitions.items():
            if prop not in merged and self._is_required(prop) and definition.get("default_value") is not None:
                merged[prop] = copy.deepcopy(definition["default_value"])
        return merged

    def explicit_inputs(
        self,
        uuid: str,
        stored: dict,
        host: HostEntity | None = None,
    ) -> ExplicitInput:
        sources: dict[str, dict] = {}
        resolved: dict[str, Any] = {}
        cache = CacheMetadata()
        for prop, value in self._with_required_defaults(stored).items():
            source = self.uncollapse(prop, value)
            evaluation = source.evaluate(host, self._is_required(prop))
            cache = cache.merge(evaluation.cache)
            if evaluation.access_denied:
                logger.warning(
                    "Access denied to the %s prop of component instance %s (%s)",
                    prop,
                    uuid,
                    self.component.component_id,
                )
            sources[prop] = source.to_dict()
            if evaluation.value is None and not self._is_required(prop):
                continue
            resolved[prop] = evaluation.value
        return ExplicitInput(values=resolved, source=sources, cache=cache)

    def hydrate(self, uuid: str, stored: dict, host: HostEntity | None = None) -> dict[str, Any]:
        explicit = self.explicit_inputs(uuid, stored, host)
        return {
            "props": explicit.values,
            "slots": default_slot_values(self.slot_definitions()),
        }

    def validate_inputs(
        self,
        stored: dict,
        uuid: str,
        allow_dynamic: bool = True,
        host: HostEntity | None = None,
    ) -> list[tuple[str, str, str]]:
        problems: list[tuple[str, str, str]] = []
        for prop in stored:
            if prop not in self.prop_field_definitions:
                problems.append(
                    (prop, "input", f"Component {self.component.component_id} has no prop `{prop}`.")
                )
        for prop, definition in self.prop_field_definitions.items():
            required = self._is_required(prop)
            if prop not in stored:
                if required and definition.get("default_value") is None:
                    problems.append((prop, "input", f"The property {prop} is required."))
                continue
            try:
                source = self.uncollapse(prop, stored[prop])
            except UnknownAdapter as e:
                problems.append((prop, "resolution", str(e)))
                continue
            except PropSourceError as e:
                problems.append((prop, "input", str(e)))
                continue
            if source.contains_dynamic() and not allow_dynamic:
                problems.append(
                    (prop, "input", f"Dynamic prop sources are not allowed for {prop} in this context.")
                )
                continue
            if host is None and source.contains_dynamic():
                continue
            try:
                evaluation = source.evaluate(host, required)
            except (InvalidExpression, MissingHostContext) as e:
                problems.append((prop, "input", str(e)))
                continue
            if evaluation.access_denied and required:
                problems.append((prop, "access", f"Access denied to the required property {prop}."))
            elif required and evaluation.value is None:
                problems.append((prop, "input", f"The property {prop} is required."))
        return problems

    # -- Client model --

    def input_to_client_model(self, explicit: ExplicitInput) -> dict:
        """Drop static values the client can read back from ``resolved``."""
        source = {}
        for prop, descriptor in explicit.source.items():
            descriptor = dict(descriptor)
            if (
                descriptor["sourceType"].startswith("static:")
                and prop in explicit.values
                and descriptor.get("value") == explicit.values[prop]
            ):
                del descriptor["value"]
            source[prop] = descriptor
        return {"source": source, "resolved": explicit.values}

    def client_model_to_input(
        self,
        uuid: str,
        client_model: dict,
        host: HostEntity | None = None,
    ) -> dict:
        resolved = client_model.get("resolved", {})
        stored: dict[str, Any] = {}
        for prop, descriptor in client_model.get("source", {}).items():
            descriptor = dict(descriptor)
            if descriptor["sourceType"].startswith("static:") and "value" not in descriptor:
                descriptor["value"] = resolved.get(prop)
            source = parse_prop_source(descriptor)
            if source.contains_dynamic():
                # Host bindings are stored as-is, whatever the saving viewer can see.
                source.check_host(host)
                stored[prop] = source.to_dict()
                continue
            evaluation = source.evaluate(host, self._is_required(prop))
            if evaluation.value is None and not self._is_required(prop):
                continue
            stored[prop] = self.collapse(prop, source)
        return stored

    # -- Dependencies --

    def prop_dependencies(self) -> DependencyReport:
        report = DependencyReport()
        for prop, definition in self.prop_field_definitions.items():
            report = report.merge(StaticPropSource.from_definition(definition).calculate_dependencies())
        return report
