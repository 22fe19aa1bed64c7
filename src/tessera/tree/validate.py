"""Structural, resolution and input validation for flat component trees.

Violations carry a dotted path (``<index>.<field>``) into the flat instance
list so callers can attach them to form fields.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tessera.core.errors import ComponentError
from tessera.core.models import ComponentInstance
from tessera.sources.base import ComponentSource, SourceContext, create_source

if TYPE_CHECKING:
    from tessera.props.host import HostEntity
    from tessera.registry.components import ComponentRegistry


@dataclass
class Violation:
    """A structured validation failure."""

    violation_type: str  # "structure", "resolution", "input", "access"
    severity: str  # "error", "warning"
    message: str
    path: str  # e.g. "2.parent_uuid", "0.inputs.title"
    uuid: str | None = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "violation_type": self.violation_type,
            "severity": self.severity,
            "message": self.message,
            "path": self.path,
            "uuid": self.uuid,
            "metadata": self.metadata,
        }


@dataclass
class ValidationResult:
    """Aggregated result of validating one component tree."""

    violations: list[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not any(v.severity == "error" for v in self.violations)

    def by_type(self, violation_type: str) -> list[Violation]:
        return [v for v in self.violations if v.violation_type == violation_type]

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "violations": [v.to_dict() for v in self.violations],
        }


def _structure(message: str, path: str, uuid: str | None = None) -> Violation:
    return Violation(violation_type="structure", severity="error", message=message, path=path, uuid=uuid)


def resolve_sources(
    instances: Sequence[ComponentInstance],
    registry: ComponentRegistry,
    context: SourceContext,
) -> tuple[dict[str, ComponentSource], list[Violation]]:
    """Resolve each instance's component version to a source.

    Returns sources keyed by uuid plus resolution violations for instances
    that could not be resolved.
    """
    sources: dict[str, ComponentSource] = {}
    violations: list[Violation] = []
    for index, instance in enumerate(instances):
        try:
            component, version = registry.resolve(instance.component_id, instance.component_version)
            sources[instance.uuid] = create_source(component, version, context)
        except ComponentError as e:
            field_name = "component_id" if instance.component_id not in registry else "component_version"
            violations.append(
                Violation(
                    violation_type="resolution",
                    severity="error",
                    message=str(e),
                    path=f"{index}.{field_name}",
                    uuid=instance.uuid,
                )
            )
    return sources, violations


def validate_structure(
    instances: Sequence[ComponentInstance],
    sources: dict[str, ComponentSource],
) -> list[Violation]:
    """Check that parent/slot references form a tree with valid slot names."""
    violations: list[Violation] = []
    uuids = [i.uuid for i in instances]
    if len(set(uuids)) != len(uuids):
        violations.append(
            _structure("Not all component instance UUIDs in this component tree are unique.", "")
        )
    known = set(uuids)
    by_uuid = {i.uuid: i for i in instances}

    for index, item in enumerate(instances):
        prefix = f"Invalid component tree item with UUID {item.uuid}"
        if item.parent_uuid is None and item.slot is None:
            continue
        if item.parent_uuid == item.uuid:
            violations.append(
                _structure(f"{prefix} claims to be parent of itself.", f"{index}.parent_uuid", item.uuid)
            )
            continue
        if item.parent_uuid is not None and item.slot is None:
            violations.append(
                _structure(
                    f"{prefix}. A slot name must be present if a parent uuid is provided.",
                    f"{index}.slot",
                    item.uuid,
                )
            )
            continue
        if item.parent_uuid is None:
            violations.append(
                _structure(
                    f"{prefix}. A parent uuid must be present if a slot name is provided.",
                    f"{index}.parent_uuid",
                    item.uuid,
                )
            )
            continue
        if item.parent_uuid not in known:
            violations.append(
                _structure(
                    f"{prefix} references an invalid parent {item.parent_uuid}.",
                    f"{index}.parent_uuid",
                    item.uuid,
                )
            )
            continue
        parent_source = sources.get(item.parent_uuid)
        if parent_source is None:
            # Parent failed to resolve; reported as a resolution violation.
            continue
        parent = by_uuid[item.parent_uuid]
        slot_names = list(parent_source.slot_definitions())
        if not slot_names:
            violations.append(
                _structure(
                    "Invalid component subtree. A component subtree must only exist for components "
                    f"with >=1 slot, but the component {parent.component_id} has no slots, yet a "
                    f"subtree exists for the instance with UUID {parent.uuid}.",
                    f"{index}.slot",
                    item.uuid,
                )
            )
        elif item.slot not in slot_names:
            violations.append(
                _structure(
                    "Invalid component subtree. This component subtree contains an invalid slot name "
                    f"for component {parent.component_id}: {item.slot}. Valid slot names are: "
                    f"{', '.join(slot_names)}.",
                    f"{index}.slot",
                    item.uuid,
                )
            )

    # Anything not reachable from a root sits on a parent cycle.
    if not violations:
        children: dict[str, list[str]] = defaultdict(list)
        for item in instances:
            if item.parent_uuid is not None:
                children[item.parent_uuid].append(item.uuid)
        reachable: set[str] = set()
        stack = [i.uuid for i in instances if i.is_root]
        while stack:
            current = stack.pop()
            if current in reachable:
                continue
            reachable.add(current)
            stack.extend(children.get(current, []))
        for index, item in enumerate(instances):
            if item.uuid not in reachable:
                violations.append(
                    _structure(
                        f"Invalid component tree item with UUID {item.uuid} is not reachable from a "
                        "root component; its ancestry forms a cycle.",
                        f"{index}.parent_uuid",
                        item.uuid,
                    )
                )
    return violations


def validate_inputs(
    instances: Sequence[ComponentInstance],
    sources: dict[str, ComponentSource],
    allow_dynamic: bool = True,
    host: HostEntity | None = None,
) -> list[Violation]:
    """Check each instance's stored inputs against its resolved version."""
    violations: list[Violation] = []
    for index, instance in enumerate(instances):
        source = sources.get(instance.uuid)
        if source is None:
            continue
        for field_name, violation_type, message in source.validate_inputs(
            instance.inputs, instance.uuid, allow_dynamic=allow_dynamic, host=host
        ):
            violations.append(
                Violation(
                    violation_type=violation_type,
                    severity="error",
                    message=message,
                    path=f"{index}.inputs.{field_name}",
                    uuid=instance.uuid,
                    metadata={"component_id": instance.component_id},
                )
            )
    return violations


def validate_tree(
    instances: Sequence[ComponentInstance],
    registry: ComponentRegistry,
    context: SourceContext,
    host: HostEntity | None = None,
    allow_dynamic: bool = True,
) -> ValidationResult:
    """Run resolution, structure and input checks over a flat instance list."""
    sources, violations = resolve_sources(instances, registry, context)
    violations.extend(validate_structure(instances, sources))
    violations.extend(validate_inputs(instances, sources, allow_dynamic=allow_dynamic, host=host))
    return ValidationResult(violations=violations)
