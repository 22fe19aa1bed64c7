"""Map declared prop shapes to the field types that store their values.

A prop shape is a small JSON-schema fragment (``type``, ``format``,
``enum``, ``$ref``, ``items``). Schema-generated component sources use the
matching field type to generate an input widget and to store static values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNLIMITED = -1


@dataclass(frozen=True)
class FieldTypeMapping:
    """How values of one prop shape are stored and edited."""

    field_type: str
    field_widget: str
    expression: str
    provider: str = "core"
    storage_settings: dict = field(default_factory=dict)


# Modules providing each field type; core field types cannot be removed.
FIELD_TYPE_PROVIDERS = {
    "string": "core",
    "integer": "core",
    "float": "core",
    "boolean": "core",
    "list_string": "options",
    "link": "link",
    "datetime": "datetime",
    "image": "image",
}

IMAGE_EXPRESSION = "field_type:image/{src<-src,alt<-alt,width<-width,height<-height}"


def _scalar_mapping(shape: dict) -> FieldTypeMapping | None:
    shape_type = shape.get("type")
    if "$ref" in shape and "image" in str(shape["$ref"]):
        return FieldTypeMapping("image", "image_image", IMAGE_EXPRESSION, provider="image")
    if shape_type == "string":
        if "enum" in shape:
            allowed = [{"value": v, "label": str(v)} for v in shape["enum"]]
            return FieldTypeMapping(
                "list_string",
                "options_select",
                "field_type:list_string/value",
                provider="options",
                storage_settings={"allowed_values": allowed},
            )
        fmt = shape.get("format")
        if fmt in ("uri", "uri-reference", "iri", "iri-reference"):
            return FieldTypeMapping("link", "link_default", "field_type:link/uri", provider="link")
        if fmt in ("date", "date-time"):
            datetime_type = "date" if fmt == "date" else "datetime"
            return FieldTypeMapping(
                "datetime",
                "datetime_default",
                "field_type:datetime/value",
                provider="datetime",
                storage_settings={"datetime_type": datetime_type},
            )
        return FieldTypeMapping("string", "string_textfield", "field_type:string/value")
    if shape_type == "integer":
        return FieldTypeMapping("integer", "number", "field_type:integer/value")
    if shape_type == "number":
        return FieldTypeMapping("float", "number", "field_type:float/value")
    if shape_type == "boolean":
        return FieldTypeMapping("boolean", "boolean_checkbox", "field_type:boolean/value")
    return None


def match_shape(shape: dict) -> tuple[FieldTypeMapping, int | None] | None:
    """Find the field type for a prop shape.

    Returns (mapping, cardinality) or None when no field type can store
    the shape. Cardinality is None for single values.
    """
    if shape.get("type") == "array":
        items = shape.get("items")
        if not isinstance(items, dict):
            return None
        mapping = _scalar_mapping(items)
        if mapping is None:
            return None
        return mapping, int(shape.get("maxItems", UNLIMITED))
    mapping = _scalar_mapping(shape)
    if mapping is None:
        return None
    return mapping, None


def prop_field_definition(shape: dict, examples: list | None = None) -> dict | None:
    """Generate the stored field definition for a prop, defaulting to its first example."""
    matched = match_shape(shape)
    if matched is None:
        return None
    mapping, cardinality = matched
    definition: dict[str, Any] = {
        "field_type": mapping.field_type,
        "field_widget": mapping.field_widget,
        "expression": mapping.expression,
        "default_value": examples[0] if examples else None,
    }
    if cardinality is not None:
        definition["cardinality"] = cardinality
    if mapping.storage_settings:
        definition["field_storage_settings"] = mapping.storage_settings
    return definition


def field_type_provider(field_type: str) -> str:
    return FIELD_TYPE_PROVIDERS.get(field_type, "core")
