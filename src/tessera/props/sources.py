"""Prop sources: how one component input obtains its value.

Stored descriptors are tagged by ``sourceType``:

- ``static:field_item:<field_type>``: a literal field value plus the
  expression that derives the prop value from it.
- ``dynamic``: an expression into a field of the host entity, resolved and
  access-checked at render time.
- ``adapter:<name>``: a named transform applied to nested sources.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from tessera.core.errors import InvalidExpression, MissingHostContext, PropSourceError
from tessera.core.models import CacheMetadata, DependencyReport
from tessera.props.adapters import get_adapter
from tessera.props.expressions import EntityFieldExpression, FieldTypeExpression, parse_expression
from tessera.props.host import ACCESS_DENIED, Evaluation, HostEntity
from tessera.props.shapes import field_type_provider

logger = logging.getLogger(__name__)

STATIC_PREFIX = "static:field_item:"
DYNAMIC = "dynamic"
ADAPTER_PREFIX = "adapter:"

# Evaluating host data varies by the viewer's permissions.
PERMISSIONS_CONTEXT = "user.permissions"


class PropSource(ABC):
    """Abstract base class for prop sources."""

    @property
    @abstractmethod
    def source_type(self) -> str:
        ...

    @abstractmethod
    def evaluate(self, host: HostEntity | None, is_required: bool) -> Evaluation:
        """Resolve the prop value, with the cacheability of doing so."""
        ...

    @abstractmethod
    def to_dict(self) -> dict:
        """Serialize to the stored descriptor shape."""
        ...

    @abstractmethod
    def calculate_dependencies(self) -> DependencyReport:
        ...

    def contains_dynamic(self) -> bool:
        return False

    def check_host(self, host: HostEntity | None) -> None:
        """Raise if this source cannot be bound to ``host``, without evaluating it."""

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


@dataclass
class StaticPropSource(PropSource):
    """A literal field value, re-derived through its expression."""

    field_type: str
    value: Any
    expression: FieldTypeExpression
    cardinality: int | None = None
    storage_settings: dict = field(default_factory=dict)
    instance_settings: dict = field(default_factory=dict)

    @property
    def source_type(self) -> str:
        return f"{STATIC_PREFIX}{self.field_type}"

    def evaluate(self, host: HostEntity | None, is_required: bool) -> Evaluation:
        return Evaluation(value=self.expression.evaluate(self.value))

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "sourceType": self.source_type,
            "value": self.value,
            "expression": str(self.expression),
        }
        settings: dict[str, Any] = {}
        if self.storage_settings:
            settings["storage"] = self.storage_settings
        if self.instance_settings:
            settings["instance"] = self.instance_settings
        if self.cardinality is not None:
            settings["cardinality"] = self.cardinality
        if settings:
            data["sourceTypeSettings"] = settings
        return data

    def matches_definition(self, definition: dict) -> bool:
        """Whether this source has exactly the shape of a default prop field definition.

        Only then can its descriptor be collapsed to the bare value.
        """
        return (
            self.field_type == definition.get("field_type")
            and str(self.expression) == definition.get("expression")
            and self.cardinality == definition.get("cardinality")
            and self.storage_settings == (definition.get("field_storage_settings") or {})
            and self.instance_settings == (definition.get("field_instance_settings") or {})
        )

    @classmethod
    def from_definition(cls, definition: dict, value: Any = None) -> StaticPropSource:
        """Build from a prop field definition, defaulting to its default value."""
        expression = parse_expression(definition["expression"])
        if not isinstance(expression, FieldTypeExpression):
            raise InvalidExpression(f"Static prop sources need a field type expression: {expression}")
        return cls(
            field_type=definition["field_type"],
            value=definition.get("default_value") if value is None else value,
            expression=expression,
            cardinality=definition.get("cardinality"),
            storage_settings=definition.get("field_storage_settings") or {},
            instance_settings=definition.get("field_instance_settings") or {},
        )

    def calculate_dependencies(self) -> DependencyReport:
        provider = field_type_provider(self.field_type)
        if provider == "core":
            return DependencyReport()
        return DependencyReport(module=[provider])


@dataclass
class DynamicPropSource(PropSource):
    """A reference to a field on the host entity."""

    expression: EntityFieldExpression

    @property
    def source_type(self) -> str:
        return DYNAMIC

    def evaluate(self, host: HostEntity | None, is_required: bool) -> Evaluation:
        self.check_host(host)
        cache = CacheMetadata(contexts={PERMISSIONS_CONTEXT})
        if host.cache_tag:
            cache.add_tags(host.cache_tag)
        if not host.access.allows(self.expression.field_name):
            logger.warning(
                "Access denied to field %s on %s %s", self.expression.field_name, host.entity_type, host.id
            )
            return Evaluation(
                value=ACCESS_DENIED if is_required else None,
                cache=cache,
                access_denied=True,
            )
        return Evaluation(value=self.expression.evaluate(host), cache=cache)

    def to_dict(self) -> dict:
        return {"sourceType": DYNAMIC, "expression": str(self.expression)}

    def contains_dynamic(self) -> bool:
        return True

    def check_host(self, host: HostEntity | None) -> None:
        if host is None:
            raise MissingHostContext(
                f"Dynamic prop source {self.expression} requires host content to evaluate"
            )
        self.expression.check_applies(host)

    def calculate_dependencies(self) -> DependencyReport:
        expr = self.expression
        return DependencyReport(
            config=[f"field.field.{expr.entity_type}.{expr.bundle}.{expr.field_name}"],
        )


@dataclass
class AdaptedPropSource(PropSource):
    """A named adapter applied to nested prop sources."""

    adapter_id: str
    adapter_inputs: dict[str, PropSource]

    @property
    def source_type(self) -> str:
        return f"{ADAPTER_PREFIX}{self.adapter_id}"

    def evaluate(self, host: HostEntity | None, is_required: bool) -> Evaluation:
        adapter = get_adapter(self.adapter_id)
        required = set(adapter.required_inputs)
        cache = CacheMetadata()
        values: dict[str, Any] = {}
        denied = False
        for name, source in self.adapter_inputs.items():
            evaluation = source.evaluate(host, is_required and name in required)
            cache = cache.merge(evaluation.cache)
            denied = denied or (evaluation.access_denied and name in required)
            values[name] = None if evaluation.value is ACCESS_DENIED else evaluation.value
        missing = required - set(self.adapter_inputs)
        if missing:
            raise PropSourceError(
                f"Adapter {self.adapter_id} is missing required inputs: {', '.join(sorted(missing))}"
            )
        if denied:
            return Evaluation(
                value=ACCESS_DENIED if is_required else None,
                cache=cache,
                access_denied=True,
            )
        return Evaluation(value=adapter.adapt(**values), cache=cache)

    def to_dict(self) -> dict:
        return {
            "sourceType": self.source_type,
            "adapterInputs": {name: s.to_dict() for name, s in self.adapter_inputs.items()},
        }

    def contains_dynamic(self) -> bool:
        return any(s.contains_dynamic() for s in self.adapter_inputs.values())

    def check_host(self, host: HostEntity | None) -> None:
        for source in self.adapter_inputs.values():
            source.check_host(host)

    def calculate_dependencies(self) -> DependencyReport:
        report = DependencyReport(module=[get_adapter(self.adapter_id).provider])
        for source in self.adapter_inputs.values():
            report = report.merge(source.calculate_dependencies())
        return report


def is_descriptor(value: Any) -> bool:
    """Whether a stored input is a full descriptor rather than a collapsed literal."""
    return isinstance(value, dict) and "sourceType" in value


def parse_prop_source(data: dict) -> PropSource:
    """Build a prop source from its stored descriptor."""
    if not is_descriptor(data):
        raise PropSourceError(f"Not a prop source descriptor: {data!r}")
    source_type = data["sourceType"]

    if source_type.startswith(STATIC_PREFIX):
        expression = parse_expression(data.get("expression", ""))
        if not isinstance(expression, FieldTypeExpression):
            raise InvalidExpression(f"Static prop sources need a field type expression: {expression}")
        settings = data.get("sourceTypeSettings") or {}
        return StaticPropSource(
            field_type=source_type[len(STATIC_PREFIX):],
            value=data.get("value"),
            expression=expression,
            cardinality=settings.get("cardinality"),
            storage_settings=settings.get("storage") or {},
            instance_settings=settings.get("instance") or {},
        )

    if source_type == DYNAMIC:
        expression = parse_expression(data.get("expression", ""))
        if not isinstance(expression, EntityFieldExpression):
            raise InvalidExpression(f"Dynamic prop sources need an entity field expression: {expression}")
        return DynamicPropSource(expression=expression)

    if source_type.startswith(ADAPTER_PREFIX):
        adapter_id = source_type[len(ADAPTER_PREFIX):]
        get_adapter(adapter_id)
        return AdaptedPropSource(
            adapter_id=adapter_id,
            adapter_inputs={
                name: parse_prop_source(nested)
                for name, nested in (data.get("adapterInputs") or {}).items()
            },
        )

    raise PropSourceError(f"Unknown prop source type: {source_type}")


def evaluate(
    source: PropSource | dict,
    host: HostEntity | None = None,
    is_required: bool = False,
) -> Evaluation:
    """Evaluate a prop source or stored descriptor."""
    if isinstance(source, dict):
        source = parse_prop_source(source)
    return source.evaluate(host, is_required)
