"""Prop source evaluation: static literals, host-content references and adapters."""

from tessera.props.host import ACCESS_DENIED, AccessPolicy, Evaluation, HostEntity
from tessera.props.sources import (
    AdaptedPropSource,
    DynamicPropSource,
    PropSource,
    StaticPropSource,
    evaluate,
    parse_prop_source,
)

__all__ = [
    "ACCESS_DENIED",
    "AccessPolicy",
    "AdaptedPropSource",
    "DynamicPropSource",
    "Evaluation",
    "HostEntity",
    "PropSource",
    "StaticPropSource",
    "evaluate",
    "parse_prop_source",
]
