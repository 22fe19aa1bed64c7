"""Version fingerprinting: self-describing hashes of canonical settings snapshots."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

VERSION_SCHEME = "tessera:version:v1"
VERSION_ID_LENGTH = 16


@dataclass(frozen=True)
class Fingerprint:
    """A self-describing, versioned hash of a component settings snapshot.

    Each fingerprint records its scheme (how it was generated) and its
    components (what went into it), so two versions can explain why they
    differ.
    """

    scheme: str  # e.g. "tessera:version:v1"
    digest: str  # SHA256 hex (full)
    components: dict[str, str]  # component_name -> component_hash

    @property
    def version_id(self) -> str:
        return self.digest[:VERSION_ID_LENGTH]

    def matches(self, other: Fingerprint | None) -> bool:
        """Match requires same scheme AND same digest."""
        if other is None:
            return False
        return self.scheme == other.scheme and self.digest == other.digest

    def explain_diff(self, other: Fingerprint | None) -> list[str]:
        """Human-readable list of reasons these fingerprints differ."""
        if other is None:
            return ["no stored fingerprint"]
        if self.scheme != other.scheme:
            return [f"scheme changed ({other.scheme} -> {self.scheme})"]
        changed = []
        all_keys = sorted(set(self.components) | set(other.components))
        for k in all_keys:
            if self.components.get(k) != other.components.get(k):
                changed.append(k)
        return [f"{k} changed" for k in changed] or ["unknown"]

    def to_dict(self) -> dict:
        """Serialize to a plain dict suitable for JSON storage."""
        return {
            "scheme": self.scheme,
            "digest": self.digest,
            "components": dict(self.components),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Fingerprint | None:
        """Deserialize from a dict. Returns None if data is empty/missing."""
        if not data or "scheme" not in data:
            return None
        return cls(
            scheme=data["scheme"],
            digest=data["digest"],
            components=data.get("components", {}),
        )


def canonicalize(obj):
    """Recursively key-sort mappings and turn tuples into lists.

    List order is significant and preserved.
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    return obj


def canonical_json(obj) -> str:
    return json.dumps(canonicalize(obj), sort_keys=True, separators=(",", ":"), default=str)


def fingerprint_value(obj) -> str:
    """Deterministic SHA256 prefix for a JSON-compatible value.

    Python's built-in hash() is not usable here: it is randomized per
    process and undefined for dicts and lists.
    """
    return hashlib.sha256(canonical_json(obj).encode()).hexdigest()[:16]


def compute_digest(components: dict[str, str]) -> str:
    """Deterministic digest from sorted component hashes."""
    parts = "|".join(f"{k}={v}" for k, v in sorted(components.items()))
    return hashlib.sha256(parts.encode()).hexdigest()


def normalize_slot_definitions(slot_definitions: dict) -> dict:
    """Reduce slot definitions to what affects stored content: title and first example."""
    normalized = {}
    for name, definition in (slot_definitions or {}).items():
        examples = definition.get("examples") or []
        normalized[name] = {
            "title": definition.get("title", name),
            "example": examples[0] if examples else "",
        }
    return normalized


def compute_version_fingerprint(
    settings: dict,
    slot_definitions: dict | None = None,
    schema: dict | None = None,
) -> Fingerprint:
    """Fingerprint a component settings snapshot.

    Two snapshots with equal canonical serializations always produce the
    same digest, regardless of key order.
    """
    components = {
        "settings": fingerprint_value(settings or {}),
        "slot_definitions": fingerprint_value(normalize_slot_definitions(slot_definitions or {})),
        "schema": fingerprint_value(schema or {}),
    }
    return Fingerprint(
        scheme=VERSION_SCHEME,
        digest=compute_digest(components),
        components=components,
    )
