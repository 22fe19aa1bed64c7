"""Structured logging and verbosity levels for Tessera renders and migrations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    DEFAULT = 0   # Summary only
    VERBOSE = 1   # + per-node status, component state transitions
    DEBUG = 2     # + version bookkeeping


@dataclass
class NodeLog:
    """Outcome of rendering a single component instance."""

    uuid: str
    component_id: str
    version: str
    status: str  # "rendered", "failed"
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "component_id": self.component_id,
            "version": self.version,
            "status": self.status,
            "error": self.error,
        }


@dataclass
class RenderLog:
    """Structured log of one tree render.

    The dict format is::

        {
            "render_id": "20250101T120000Z",
            "context": "Page Home (1), field components",
            "preview": false,
            "nodes": [{"uuid": "...", "status": "rendered", ...}, ...],
            "rendered": 4,
            "failed": 1,
            "total_time": 0.02,
        }
    """

    render_id: str = ""
    context: str = ""
    preview: bool = False
    nodes: list[NodeLog] = field(default_factory=list)
    rendered: int = 0
    failed: int = 0
    total_time: float = 0.0

    def finalize(self) -> None:
        """Compute totals from node data."""
        self.rendered = sum(1 for n in self.nodes if n.status == "rendered")
        self.failed = sum(1 for n in self.nodes if n.status == "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "render_id": self.render_id,
            "context": self.context,
            "preview": self.preview,
            "nodes": [n.to_dict() for n in self.nodes],
            "rendered": self.rendered,
            "failed": self.failed,
            "total_time": self.total_time,
        }


class RenderLogger:
    """Structured logger for Tessera renders and component migrations.

    Writes JSONL log files to logs_dir and optionally emits console output
    via Rich based on verbosity level.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.DEFAULT,
        logs_dir: Path | None = None,
        console: Console | None = None,
    ):
        self.verbosity = verbosity
        self.logs_dir = logs_dir
        self.console = console or Console(stderr=True)
        self.render_log = RenderLog(
            render_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"),
        )
        self._log_file = None
        self._log_path: Path | None = None

        if logs_dir is not None:
            logs_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = logs_dir / f"{self.render_log.render_id}.jsonl"
            self._log_file = open(self._log_path, "a")

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def _write_event(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        if self._log_file is not None:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()
            self._log_file.write(json.dumps(event) + "\n")
            self._log_file.flush()

    def _console_print(self, message: str, min_verbosity: Verbosity) -> None:
        """Print to console if verbosity is high enough."""
        if self.verbosity >= min_verbosity:
            self.console.print(message)

    # -- Render events --

    def render_start(self, context: str, node_count: int, preview: bool) -> None:
        self.render_log = RenderLog(render_id=self.render_log.render_id, context=context, preview=preview)
        self._write_event({
            "event": "render_start",
            "context": context,
            "node_count": node_count,
            "preview": preview,
        })
        self._console_print(
            f"[bold]Rendering[/bold] {context or 'component tree'} ({node_count} node(s))",
            Verbosity.VERBOSE,
        )

    def node_rendered(self, uuid: str, component_id: str, version: str) -> None:
        self.render_log.nodes.append(
            NodeLog(uuid=uuid, component_id=component_id, version=version, status="rendered")
        )
        self._write_event({
            "event": "node_rendered",
            "uuid": uuid,
            "component_id": component_id,
            "version": version,
        })
        self._console_print(
            f"  [green]+[/green] {component_id}@{version} [dim]{uuid}[/dim]",
            Verbosity.VERBOSE,
        )

    def node_failed(self, uuid: str, component_id: str, version: str, error: str) -> None:
        self.render_log.nodes.append(
            NodeLog(
                uuid=uuid,
                component_id=component_id,
                version=version,
                status="failed",
                error=error,
            )
        )
        self._write_event({
            "event": "node_failed",
            "uuid": uuid,
            "component_id": component_id,
            "version": version,
            "error": error,
        })
        self._console_print(
            f"  [red]x[/red] {component_id}@{version} [dim]{uuid}[/dim]: {error}",
            Verbosity.DEFAULT,
        )

    def render_finish(self, total_time: float) -> None:
        self.render_log.total_time = total_time
        self.render_log.finalize()
        self._write_event({
            "event": "render_finish",
            "rendered": self.render_log.rendered,
            "failed": self.render_log.failed,
            "total_time": round(total_time, 3),
        })

    # -- Component lifecycle events --

    def version_created(self, component_id: str, version_id: str) -> None:
        self._write_event({
            "event": "version_created",
            "component_id": component_id,
            "version": version_id,
        })
        self._console_print(
            f"  [cyan]v[/cyan] {component_id}: new version {version_id}",
            Verbosity.DEBUG,
        )

    def component_broken(self, component_id: str, usages: int) -> None:
        self._write_event({
            "event": "component_broken",
            "component_id": component_id,
            "usages": usages,
        })
        self._console_print(
            f"  [yellow]![/yellow] {component_id}: broken, {usages} usage(s) kept on fallback",
            Verbosity.VERBOSE,
        )

    def component_pruned(self, component_id: str) -> None:
        self._write_event({"event": "component_pruned", "component_id": component_id})
        self._console_print(
            f"  [red]-[/red] {component_id}: broken and unused, removed",
            Verbosity.VERBOSE,
        )

    def component_recovered(self, component_id: str, version_id: str) -> None:
        self._write_event({
            "event": "component_recovered",
            "component_id": component_id,
            "version": version_id,
        })
        self._console_print(
            f"  [green]~[/green] {component_id}: recovered at {version_id}",
            Verbosity.VERBOSE,
        )

    def close(self) -> None:
        """Close the log file if open."""
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
