"""Structured-data expressions locating a prop value inside field data.

Two forms are supported::

    field_type:string/value
    field_type:image/{src<-src,alt<-alt,width<-width,height<-height}
    entity:node:article/title/value
    entity:node:article/tags[1]/value

``field_type:`` expressions read a stored field item (static prop sources).
``entity:`` expressions read a field on the host entity (dynamic prop
sources). The ``{key<-prop,...}`` form builds an object from several field
properties.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tessera.core.errors import InvalidExpression

if TYPE_CHECKING:
    from tessera.props.host import HostEntity

FIELD_TYPE_PREFIX = "field_type:"
ENTITY_PREFIX = "entity:"

_FIELD_RE = re.compile(r"^(?P<name>[a-z0-9_]+)(?:\[(?P<delta>\d+)\])?$")
_MAPPING_RE = re.compile(r"^(?P<key>[A-Za-z0-9_]+)<-(?P<prop>[a-z0-9_]+)$")


def _parse_properties(text: str, expression: str) -> tuple[tuple[str, str], ...]:
    """Parse ``value`` or ``{a<-x,b<-y}`` into (output key, field property) pairs.

    A single property is returned with an empty output key.
    """
    if text.startswith("{") and text.endswith("}"):
        pairs = []
        for part in text[1:-1].split(","):
            match = _MAPPING_RE.match(part.strip())
            if match is None:
                raise InvalidExpression(f"Invalid property mapping `{part}` in expression {expression}")
            pairs.append((match["key"], match["prop"]))
        if not pairs:
            raise InvalidExpression(f"Empty property mapping in expression {expression}")
        return tuple(pairs)
    if not re.match(r"^[a-z0-9_]+$", text):
        raise InvalidExpression(f"Invalid field property `{text}` in expression {expression}")
    return (("", text),)


def _format_properties(properties: tuple[tuple[str, str], ...]) -> str:
    if len(properties) == 1 and properties[0][0] == "":
        return properties[0][1]
    return "{" + ",".join(f"{key}<-{prop}" for key, prop in properties) + "}"


def _extract(item: Any, properties: tuple[tuple[str, str], ...], expression: str) -> Any:
    """Read the requested properties from one field item.

    Items of single-property field types may be stored as bare scalars.
    """
    if item is None:
        return None
    if len(properties) == 1 and properties[0][0] == "":
        prop = properties[0][1]
        if isinstance(item, dict):
            return item.get(prop)
        return item
    if not isinstance(item, dict):
        raise InvalidExpression(
            f"Expression {expression} needs a field item with properties, got {type(item).__name__}"
        )
    return {key: item.get(prop) for key, prop in properties}


@dataclass(frozen=True)
class FieldTypeExpression:
    """Evaluates against a stored field item value."""

    field_type: str
    properties: tuple[tuple[str, str], ...]

    def evaluate(self, value: Any) -> Any:
        # A list holds one item per delta (multiple cardinality).
        if isinstance(value, list):
            return [_extract(item, self.properties, str(self)) for item in value]
        return _extract(value, self.properties, str(self))

    def __str__(self) -> str:
        return f"{FIELD_TYPE_PREFIX}{self.field_type}/{_format_properties(self.properties)}"


@dataclass(frozen=True)
class EntityFieldExpression:
    """Evaluates against a field on the host entity."""

    entity_type: str
    bundle: str
    field_name: str
    properties: tuple[tuple[str, str], ...]
    delta: int | None = None

    def check_applies(self, host: HostEntity) -> None:
        if host.entity_type != self.entity_type or self.bundle not in ("*", host.bundle):
            raise InvalidExpression(
                f"Expression {self} does not apply to {host.entity_type}:{host.bundle}"
            )

    def evaluate(self, host: HostEntity) -> Any:
        self.check_applies(host)
        if self.field_name not in host.fields:
            raise InvalidExpression(
                f"Expression {self} references a field that does not exist: {self.field_name}"
            )
        items = host.fields[self.field_name]
        if self.delta is not None:
            if self.delta >= len(items):
                return None
            return _extract(items[self.delta], self.properties, str(self))
        if not items:
            return None
        if len(items) == 1:
            return _extract(items[0], self.properties, str(self))
        return [_extract(item, self.properties, str(self)) for item in items]

    def __str__(self) -> str:
        delta = f"[{self.delta}]" if self.delta is not None else ""
        return (
            f"{ENTITY_PREFIX}{self.entity_type}:{self.bundle}/"
            f"{self.field_name}{delta}/{_format_properties(self.properties)}"
        )


def parse_expression(text: str) -> FieldTypeExpression | EntityFieldExpression:
    """Parse an expression string; raises InvalidExpression on malformed input."""
    if not isinstance(text, str):
        raise InvalidExpression(f"Expression must be a string, got {type(text).__name__}")

    if text.startswith(FIELD_TYPE_PREFIX):
        field_type, sep, props = text[len(FIELD_TYPE_PREFIX):].partition("/")
        if not sep or not field_type:
            raise InvalidExpression(f"Invalid field type expression: {text}")
        return FieldTypeExpression(field_type, _parse_properties(props, text))

    if text.startswith(ENTITY_PREFIX):
        parts = text[len(ENTITY_PREFIX):].split("/")
        if len(parts) != 3:
            raise InvalidExpression(f"Invalid entity field expression: {text}")
        target, field_part, props = parts
        entity_type, sep, bundle = target.partition(":")
        if not sep or not entity_type or not bundle:
            raise InvalidExpression(f"Entity field expression needs entity_type:bundle: {text}")
        match = _FIELD_RE.match(field_part)
        if match is None:
            raise InvalidExpression(f"Invalid field name `{field_part}` in expression {text}")
        delta = int(match["delta"]) if match["delta"] is not None else None
        return EntityFieldExpression(
            entity_type=entity_type,
            bundle=bundle,
            field_name=match["name"],
            properties=_parse_properties(props, text),
            delta=delta,
        )

    raise InvalidExpression(f"Unknown expression type: {text}")
