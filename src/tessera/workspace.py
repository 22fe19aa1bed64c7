"""Workspace: settings, source context and a persisted component registry.

Usage:
    from tessera import Workspace

    ws = Workspace.open()
    ws.reconcile()
    result = ws.render(instances, host=page)
    ws.save()
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tessera.config import Settings, get_settings
from tessera.core.logging import RenderLogger, Verbosity
from tessera.core.models import ComponentInstance, DependencyReport
from tessera.db.engine import get_session, init_database
from tessera.db.store import load_registry, save_registry
from tessera.migration.controller import FallbackController, ReconcileReport
from tessera.migration.usage import UsageIndex
from tessera.props.host import HostEntity
from tessera.registry.components import ComponentRegistry
from tessera.sources.base import SourceContext, create_source
from tessera.tree.render import RenderResult, TreeRenderer
from tessera.tree.validate import ValidationResult, validate_tree

logger = logging.getLogger(__name__)


class Workspace:
    """One resolution pass over a registry loaded from storage."""

    def __init__(
        self,
        settings: Settings,
        registry: ComponentRegistry,
        context: SourceContext,
        usage: UsageIndex | None = None,
        render_logger: RenderLogger | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.context = context
        self.usage = usage or UsageIndex()
        self.render_logger = render_logger
        self.registry.render_logger = render_logger

    @classmethod
    def open(cls, settings: Settings | None = None, log_to_disk: bool = True) -> Workspace:
        """Load the registry from the database and discover definitions on disk."""
        settings = settings or get_settings()
        init_database(settings)
        render_logger = RenderLogger(
            verbosity=Verbosity(min(settings.verbosity, Verbosity.DEBUG)),
            logs_dir=settings.logs_dir if log_to_disk else None,
        )
        with get_session(settings) as session:
            registry = load_registry(session)
        logger.debug("Loaded %d component(s) from %s", len(registry), settings.db_path)
        return cls(settings, registry, SourceContext.from_settings(settings), render_logger=render_logger)

    def save(self) -> None:
        with get_session(self.settings) as session:
            save_registry(session, self.registry)

    def close(self) -> None:
        if self.render_logger is not None:
            self.render_logger.close()

    # -- Operations --

    def reconcile(self) -> ReconcileReport:
        controller = FallbackController(self.registry, self.context, self.usage, self.render_logger)
        return controller.reconcile()

    def validate(
        self,
        instances: Sequence[ComponentInstance],
        host: HostEntity | None = None,
        allow_dynamic: bool = True,
    ) -> ValidationResult:
        return validate_tree(instances, self.registry, self.context, host=host, allow_dynamic=allow_dynamic)

    def render(
        self,
        instances: Sequence[ComponentInstance],
        host: HostEntity | None = None,
        is_preview: bool | None = None,
        field_name: str = "components",
    ) -> RenderResult:
        if is_preview is None:
            is_preview = self.settings.preview
        renderer = TreeRenderer(self.registry, self.context, self.render_logger)
        return renderer.render(instances, host=host, is_preview=is_preview, field_name=field_name)

    def dependencies(self, component_id: str, version_id: str | None = None) -> DependencyReport:
        component, version = self.registry.resolve(component_id, version_id)
        return create_source(component, version, self.context).calculate_dependencies()
