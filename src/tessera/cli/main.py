"""Tessera CLI — main entry point and shared utilities."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.console import Console

console = Console()

STATUS_STYLES = {
    "active": "green",
    "disabled": "yellow",
    "broken": "red",
}


def get_status_style(status: str) -> str:
    """Return Rich style string for a component status."""
    return STATUS_STYLES.get(status, "white")


def read_json(path: str) -> object:
    """Load a JSON document, exiting with a readable error on failure."""
    try:
        return json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error reading {path}:[/red] {e}")
        sys.exit(1)


def open_workspace(definitions: str | None = None, storage: str | None = None):
    """Open a workspace, optionally overriding directories from the command line."""
    from tessera.config import get_settings
    from tessera.workspace import Workspace

    settings = get_settings()
    overrides = {}
    if definitions:
        overrides["definitions_dir"] = Path(definitions)
    if storage:
        overrides["storage_dir"] = Path(storage)
    if overrides:
        settings = settings.model_copy(update=overrides)
    return Workspace.open(settings)


def workspace_options(fn):
    """Shared --definitions/--storage options."""
    fn = click.option("--storage", default=None, help="Override storage directory")(fn)
    fn = click.option("--definitions", default=None, help="Override component definitions directory")(fn)
    return fn


@click.group()
def main():
    """Tessera — versioned component trees with failure-isolated rendering."""
    pass


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from tessera.cli.component_commands import components, deps, reconcile, versions  # noqa: E402
from tessera.cli.render_commands import render, validate  # noqa: E402

# Register commands
main.add_command(components)
main.add_command(versions)
main.add_command(deps)
main.add_command(reconcile)
main.add_command(validate)
main.add_command(render)
