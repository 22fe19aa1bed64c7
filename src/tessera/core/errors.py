"""Tessera error types."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tessera.tree.validate import Violation


class TesseraError(Exception):
    """Base exception for Tessera."""

    pass


class ComponentError(TesseraError):
    """Error in component definition or resolution."""

    pass


class UnknownComponent(ComponentError):
    """A component id that the registry has never seen."""

    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(f"Unknown component: {component_id}")


class UnknownVersion(ComponentError):
    """A version id absent from a component's history."""

    def __init__(self, component_id: str, version: str, available: list[str]):
        self.component_id = component_id
        self.version = version
        self.available = available
        listed = ", ".join(f"`{v}`" for v in available)
        super().__init__(
            f"The requested version `{version}` is not available. "
            f"Available versions: {listed}."
        )


class VersionError(ComponentError):
    """Illegal operation on a component's version history."""

    pass


class UnknownSource(ComponentError):
    """No component source plugin is registered under the given discriminant."""

    pass


class PropSourceError(TesseraError):
    """Error while parsing or evaluating a prop source."""

    pass


class UnknownAdapter(PropSourceError):
    """An adapter prop source names an adapter that is not registered."""

    pass


class MissingHostContext(PropSourceError):
    """A dynamic prop source was evaluated without host content."""

    pass


class InvalidExpression(PropSourceError):
    """A prop expression cannot be parsed or does not apply to its input."""

    pass


class InvalidInput(TesseraError):
    """Stored component inputs do not satisfy the component's input shape."""

    pass


class StructuralError(TesseraError):
    """A component tree is not a well-formed tree.

    Carries the individual violations so callers can surface them as
    field-level validation errors.
    """

    def __init__(self, violations: list[Violation]):
        self.violations = violations
        messages = "; ".join(f"{v.path}: {v.message}" for v in violations)
        super().__init__(f"Invalid component tree: {messages}")


class RenderError(TesseraError):
    """Error raised by a component source while producing markup."""

    pass


class BrokenComponentError(ComponentError):
    """The capability behind a component can no longer be resolved."""

    pass
