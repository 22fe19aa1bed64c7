"""Component sources: block, template fragment, code-defined and fallback."""

from tessera.sources.base import (
    CandidateDefinition,
    ComponentSource,
    ExplicitInput,
    SourceContext,
    create_real_source,
    create_source,
    get_source_class,
    list_sources,
    register_source,
)
from tessera.sources.block import BlockPlugin, BlockSource, register_block
from tessera.sources.code import CodeComponent, CodeComponentStore, CodeDefinedSource, DraftStore
from tessera.sources.fallback import FallbackSource
from tessera.sources.template import TemplateDefinition, TemplateFragmentSource, TemplateLibrary

__all__ = [
    "BlockPlugin",
    "BlockSource",
    "CandidateDefinition",
    "CodeComponent",
    "CodeComponentStore",
    "CodeDefinedSource",
    "ComponentSource",
    "DraftStore",
    "ExplicitInput",
    "FallbackSource",
    "SourceContext",
    "TemplateDefinition",
    "TemplateFragmentSource",
    "TemplateLibrary",
    "create_real_source",
    "create_source",
    "get_source_class",
    "list_sources",
    "register_block",
    "register_source",
]
