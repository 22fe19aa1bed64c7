"""Load and save a component registry through a database session."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from tessera.core.logging import RenderLogger
from tessera.db.models import ComponentRecord, VersionRecord
from tessera.registry.components import Component, ComponentRegistry, Version

logger = logging.getLogger(__name__)


def _to_component(record: ComponentRecord) -> Component:
    return Component(
        component_id=record.component_id,
        label=record.label,
        source=record.source,
        source_local_id=record.source_local_id,
        provider=record.provider,
        category=record.category,
        status=record.status,
        active_version=record.active_version,
        history=record.history,
        versions={v.version_id: Version.from_dict(v.data) for v in record.versions},
        fallback_metadata=record.fallback_metadata,
    )


def load_registry(session: Session, render_logger: RenderLogger | None = None) -> ComponentRegistry:
    """Build a registry from every stored component."""
    records = session.scalars(
        select(ComponentRecord).options(selectinload(ComponentRecord.versions))
    ).all()
    return ComponentRegistry((_to_component(r) for r in records), render_logger=render_logger)


def save_component(session: Session, component: Component) -> ComponentRecord:
    """Insert or update one component and sync its version rows."""
    record = session.get(ComponentRecord, component.component_id)
    if record is None:
        record = ComponentRecord(component_id=component.component_id)
        session.add(record)
    record.label = component.label
    record.source = component.source
    record.source_local_id = component.source_local_id
    record.provider = component.provider
    record.category = component.category
    record.status = component.status
    record.active_version = component.active_version
    record.history = list(component.history)
    record.fallback_metadata = component.fallback_metadata

    stored = {v.version_id: v for v in record.versions}
    for version_id, row in stored.items():
        if version_id not in component.versions:
            record.versions.remove(row)
    for version_id, version in component.versions.items():
        if version_id not in stored:
            row = VersionRecord(version_id=version_id)
            row.data = version.to_dict()
            record.versions.append(row)
    return record


def save_registry(session: Session, registry: ComponentRegistry) -> None:
    """Persist the registry, deleting components it no longer holds."""
    for component in registry.all():
        save_component(session, component)
    for record in session.scalars(select(ComponentRecord)).all():
        if record.component_id not in registry:
            logger.debug("Deleting stored component %s", record.component_id)
            session.delete(record)
    session.flush()
