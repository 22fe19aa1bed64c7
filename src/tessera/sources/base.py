"""Component source interface and registry.

A component source is the implementation behind one kind of component:
how candidate definitions are discovered, how instance inputs are turned
into explicit values, how one instance renders, and what it depends on.
Sources are selected by the discriminant stored on each component.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from jinja2 import Environment, select_autoescape
from markupsafe import Markup

from tessera.core.errors import UnknownSource
from tessera.core.models import CacheMetadata, DependencyReport, RenderNode

if TYPE_CHECKING:
    from tessera.config import Settings
    from tessera.props.host import HostEntity
    from tessera.registry.components import Component, Version
    from tessera.sources.code import CodeComponentStore, DraftStore
    from tessera.sources.template import TemplateLibrary


@dataclass
class CandidateDefinition:
    """A definition a source could expose as a component.

    Ineligible candidates carry the human-readable reasons why.
    """

    source: str
    local_id: str
    component_id: str
    label: str
    provider: str | None = None
    category: str = ""
    settings: dict = field(default_factory=dict)
    slot_definitions: dict = field(default_factory=dict)
    schema: dict = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)

    @property
    def eligible(self) -> bool:
        return not self.reasons


@dataclass
class ExplicitInput:
    """Explicit input values for one instance, ready to render.

    ``source`` holds full prop source descriptors for schema-generated
    sources and is empty for opaque settings bags.
    """

    values: dict
    source: dict = field(default_factory=dict)
    cache: CacheMetadata = field(default_factory=CacheMetadata)
    opaque: bool = False

    def to_dict(self) -> dict:
        if self.opaque:
            return self.values
        return {"source": self.source, "resolved": self.values}


@dataclass
class SourceContext:
    """Collaborators component sources need, constructed once per pass."""

    templates: TemplateLibrary
    code_components: CodeComponentStore
    drafts: DraftStore
    environment: Environment = field(
        default_factory=lambda: Environment(autoescape=select_autoescape(default_for_string=True))
    )
    base_path: str = "/"
    asset_version: str = "0.0.0"

    @classmethod
    def from_settings(cls, settings: Settings) -> SourceContext:
        from tessera.sources.code import CodeComponentStore, DraftStore
        from tessera.sources.template import TemplateLibrary

        code_components, drafts = CodeComponentStore.discover(settings.definitions_dir)
        return cls(
            templates=TemplateLibrary.discover(settings.definitions_dir),
            code_components=code_components,
            drafts=drafts,
            base_path=settings.base_path,
            asset_version=settings.asset_version,
        )

    @classmethod
    def empty(cls) -> SourceContext:
        from tessera.sources.code import CodeComponentStore, DraftStore
        from tessera.sources.template import TemplateLibrary

        return cls(templates=TemplateLibrary(), code_components=CodeComponentStore(), drafts=DraftStore())


def default_slot_values(slot_definitions: dict) -> dict[str, str]:
    """Each slot's first example, or an empty string."""
    values = {}
    for name, definition in slot_definitions.items():
        examples = definition.get("examples") or []
        values[name] = examples[0] if examples else ""
    return values


class ComponentSource(ABC):
    """Abstract base class for component sources."""

    source_id: ClassVar[str] = ""
    label: ClassVar[str] = ""

    def __init__(self, component: Component, version: Version, context: SourceContext):
        self.component = component
        self.version = version
        self.settings = version.settings
        self.context = context

    # -- Discovery --

    @classmethod
    @abstractmethod
    def discover(cls, context: SourceContext) -> Iterator[CandidateDefinition]:
        """Yield every candidate definition, eligible or not."""
        ...

    # -- Shape --

    def slot_definitions(self) -> dict:
        return self.version.slot_definitions

    def explicit_input_definitions(self) -> dict:
        """Prop name -> {"required": bool, "shape": {...}}."""
        return self.version.schema

    # -- Inputs --

    def default_inputs(self) -> dict:
        """Inputs for a freshly placed instance, in stored form."""
        return {}

    @abstractmethod
    def explicit_inputs(
        self,
        uuid: str,
        stored: dict,
        host: HostEntity | None = None,
    ) -> ExplicitInput:
        """Merge stored inputs with this version's defaults and evaluate them."""
        ...

    def hydrate(self, uuid: str, stored: dict, host: HostEntity | None = None) -> dict[str, Any]:
        return {"slots": default_slot_values(self.slot_definitions())}

    def validate_inputs(
        self,
        stored: dict,
        uuid: str,
        allow_dynamic: bool = True,
        host: HostEntity | None = None,
    ) -> list[tuple[str, str, str]]:
        """Return (field, violation type, message) for every input problem."""
        return []

    def input_to_client_model(self, explicit: ExplicitInput) -> dict:
        return explicit.to_dict()

    def client_model_to_input(
        self,
        uuid: str,
        client_model: dict,
        host: HostEntity | None = None,
    ) -> dict:
        return client_model

    # -- Rendering --

    @abstractmethod
    def render(
        self,
        inputs: ExplicitInput,
        slot_definitions: dict,
        uuid: str,
        is_preview: bool = False,
    ) -> RenderNode:
        """Build the render node for one instance (slots are filled in later)."""
        ...

    def set_slots(self, node: RenderNode, slots: dict[str, Markup]) -> None:
        node.slots = dict(slots)

    @abstractmethod
    def markup(self, node: RenderNode) -> str:
        """Produce final markup once slots are set."""
        ...

    # -- Dependencies and identity --

    @abstractmethod
    def calculate_dependencies(self) -> DependencyReport:
        ...

    def referenced_plugin_class(self) -> str | None:
        """Dotted path of the class implementing the underlying capability."""
        return None

    def source_specific_component_id(self) -> str:
        return self.component.source_local_id

    def is_broken(self) -> bool:
        """Whether the capability behind this component can no longer be resolved."""
        return False


# Source registry
_SOURCES: dict[str, type[ComponentSource]] = {}


def register_source(name: str):
    """Decorator to register a component source class under its discriminant."""

    def wrapper(cls):
        cls.source_id = name
        _SOURCES[name] = cls
        return cls

    return wrapper


def get_source_class(name: str) -> type[ComponentSource]:
    if name not in _SOURCES:
        raise UnknownSource(f"Unknown component source: {name}. Available: {sorted(_SOURCES)}")
    return _SOURCES[name]


def list_sources() -> list[str]:
    return sorted(_SOURCES)


def create_source(component: Component, version: Version, context: SourceContext) -> ComponentSource:
    """Instantiate the source a component currently renders through."""
    return get_source_class(component.effective_source)(component, version, context)


def create_real_source(component: Component, version: Version, context: SourceContext) -> ComponentSource:
    """Instantiate the component's own source, even while it is on fallback."""
    return get_source_class(component.source)(component, version, context)
