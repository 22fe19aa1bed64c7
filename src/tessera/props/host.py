"""Host content that dynamic prop sources read from, and evaluation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tessera.core.models import CacheMetadata


class _AccessDenied:
    """Stands in for a required value the current viewer may not see.

    Falsy and renders as an empty string, so templates treat it like an
    absent value, while validation can still tell it apart from None.
    """

    _instance: _AccessDenied | None = None

    def __new__(cls) -> _AccessDenied:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "ACCESS_DENIED"


ACCESS_DENIED = _AccessDenied()


@dataclass
class AccessPolicy:
    """Field-level view access for the current viewer.

    A field listed in ``field_permissions`` is only visible to viewers holding
    the named permission.
    """

    permissions: set[str] = field(default_factory=set)
    field_permissions: dict[str, str] = field(default_factory=dict)

    def allows(self, field_name: str) -> bool:
        required = self.field_permissions.get(field_name)
        return required is None or required in self.permissions

    @classmethod
    def from_dict(cls, data: dict | None) -> AccessPolicy:
        data = data or {}
        return cls(
            permissions=set(data.get("permissions", [])),
            field_permissions=dict(data.get("field_permissions", {})),
        )


@dataclass
class HostEntity:
    """The content entity a component tree is stored on.

    Field values are lists of items (one per delta); each item is a dict of
    field properties, e.g. ``{"title": [{"value": "Hello"}]}``.
    """

    entity_type: str
    bundle: str
    id: str | None = None
    label: str = ""
    entity_type_label: str = ""
    fields: dict[str, list[dict]] = field(default_factory=dict)
    access: AccessPolicy = field(default_factory=AccessPolicy)

    @property
    def cache_tag(self) -> str | None:
        if self.id is None:
            return None
        return f"{self.entity_type}:{self.id}"

    def rendering_context(self, field_name: str) -> str:
        """Identify this entity and field for operators reading logs."""
        type_label = self.entity_type_label or self.entity_type.replace("_", " ").capitalize()
        return f"{type_label} {self.label} ({self.id or '-'}), field {field_name}"

    @classmethod
    def from_dict(cls, data: dict) -> HostEntity:
        entity_id = data.get("id")
        return cls(
            entity_type=data["entity_type"],
            bundle=data.get("bundle", data["entity_type"]),
            id=str(entity_id) if entity_id is not None else None,
            label=data.get("label", ""),
            entity_type_label=data.get("entity_type_label", ""),
            fields={
                name: items if isinstance(items, list) else [items]
                for name, items in (data.get("fields") or {}).items()
            },
            access=AccessPolicy.from_dict(data.get("access")),
        )


@dataclass
class Evaluation:
    """A prop value together with the cacheability of computing it."""

    value: Any
    cache: CacheMetadata = field(default_factory=CacheMetadata)
    access_denied: bool = False
