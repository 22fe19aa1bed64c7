"""Adapter interface and registry.

Adapters compute a prop value from one or more evaluated inputs, e.g. apply
an image style to an image, or turn a UNIX timestamp into a date.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, ClassVar
from urllib.parse import urlsplit, urlunsplit

from tessera.core.errors import PropSourceError, UnknownAdapter


class Adapter(ABC):
    """Abstract base class for all adapters."""

    adapter_id: ClassVar[str] = ""
    provider: ClassVar[str] = "tessera"  # module that provides the adapter
    inputs: ClassVar[dict[str, dict]] = {}  # input name -> {"required": bool, "type": ...}

    @abstractmethod
    def adapt(self, **inputs: Any) -> Any:
        """Compute the adapted value from evaluated inputs."""
        ...

    @property
    def required_inputs(self) -> list[str]:
        return [name for name, spec in self.inputs.items() if spec.get("required", True)]


# Adapter registry
_ADAPTERS: dict[str, type[Adapter]] = {}


def register_adapter(name: str):
    """Decorator to register an adapter class."""

    def wrapper(cls):
        cls.adapter_id = name
        _ADAPTERS[name] = cls
        return cls

    return wrapper


def get_adapter(name: str) -> Adapter:
    """Get an instantiated adapter by name."""
    if name not in _ADAPTERS:
        raise UnknownAdapter(f"Unknown adapter: {name}. Available: {sorted(_ADAPTERS)}")
    return _ADAPTERS[name]()


def list_adapters() -> list[str]:
    return sorted(_ADAPTERS)


# ---------------------------------------------------------------------------
# Built-in adapters
# ---------------------------------------------------------------------------


@register_adapter("image_apply_style")
class ImageApplyStyleAdapter(Adapter):
    """Point an image at a derivative generated by an image style."""

    provider = "image"
    inputs = {
        "image": {"required": True, "type": "image"},
        "imageStyle": {"required": True, "type": "string"},
    }

    def adapt(self, image: dict | None = None, imageStyle: str | None = None) -> dict | None:
        if not image:
            return None
        if not imageStyle:
            raise PropSourceError("image_apply_style needs an image style")
        parts = urlsplit(image["src"])
        path = parts.path
        if path.startswith("/files/"):
            path = path[len("/files/"):]
        styled = f"/files/styles/{imageStyle}/public/{path.lstrip('/')}"
        return {
            **image,
            "src": urlunsplit((parts.scheme, parts.netloc, styled, parts.query, parts.fragment)),
        }


@register_adapter("day_count")
class DayCountAdapter(Adapter):
    """Number of days between two ISO dates."""

    inputs = {
        "oldest": {"required": True, "type": "date"},
        "newest": {"required": True, "type": "date"},
    }

    def adapt(self, oldest: str | None = None, newest: str | None = None) -> int | None:
        if oldest is None or newest is None:
            return None
        return (date.fromisoformat(newest[:10]) - date.fromisoformat(oldest[:10])).days


@register_adapter("unix_to_date")
class UnixTimestampToDateAdapter(Adapter):
    """UNIX timestamp to an ISO 8601 date (UTC)."""

    inputs = {"unix": {"required": True, "type": "integer"}}

    def adapt(self, unix: int | None = None) -> str | None:
        if unix is None:
            return None
        return datetime.fromtimestamp(int(unix), tz=timezone.utc).date().isoformat()
