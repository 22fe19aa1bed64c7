"""Component registry commands — tessera components, versions, deps, reconcile."""

from __future__ import annotations

import json
import sys

import click
from rich import box
from rich.table import Table

from tessera.cli.main import console, get_status_style, open_workspace, read_json, workspace_options
from tessera.core.errors import ComponentError


def component_status(component) -> str:
    if component.is_fallback:
        return "broken"
    return "active" if component.status else "disabled"


@click.command()
@workspace_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def components(definitions: str | None, storage: str | None, output_json: bool):
    """List registered components with their status and active version."""
    ws = open_workspace(definitions, storage)
    try:
        registered = ws.registry.all()
    finally:
        ws.close()

    if output_json:
        click.echo(json.dumps([
            {
                "id": c.component_id,
                "label": c.label,
                "source": c.source,
                "status": component_status(c),
                "active_version": c.active_version,
            }
            for c in registered
        ], indent=2))
        return

    if not registered:
        console.print("[dim]No components registered.[/dim] Run [bold]tessera reconcile[/bold] first.")
        return

    table = Table(title=f"Components ({len(registered)})", box=box.ROUNDED)
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Label")
    table.add_column("Source", style="dim")
    table.add_column("Status")
    table.add_column("Active version", style="dim", no_wrap=True)
    for c in registered:
        status = component_status(c)
        style = get_status_style(status)
        table.add_row(c.component_id, c.label, c.source, f"[{style}]{status}[/{style}]", c.active_version)
    console.print(table)


@click.command()
@click.argument("component_id")
@workspace_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def versions(component_id: str, definitions: str | None, storage: str | None, output_json: bool):
    """Show the version history of COMPONENT_ID, most recent first."""
    ws = open_workspace(definitions, storage)
    try:
        component = ws.registry.load(component_id)
    except ComponentError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        ws.close()

    history = component.history
    if output_json:
        click.echo(json.dumps({
            "id": component.component_id,
            "active_version": component.active_version,
            "history": history,
        }, indent=2))
        return

    table = Table(title=f"{component.label} ({component.component_id})", box=box.ROUNDED)
    table.add_column("#", style="dim")
    table.add_column("Version", style="bold", no_wrap=True)
    table.add_column("Changes")
    for i, version_id in enumerate(history):
        version = component.versions.get(version_id)
        older = component.versions.get(history[i + 1]) if i + 1 < len(history) else None
        if version is None or version.fingerprint is None:
            changes = "[dim]-[/dim]"
        elif older is None:
            changes = "[dim]initial[/dim]"
        else:
            changes = ", ".join(version.fingerprint.explain_diff(older.fingerprint))
        marker = " [green]*[/green]" if version_id == component.active_version and i == 0 else ""
        table.add_row(str(i), f"{version_id}{marker}", changes)
    console.print(table)


@click.command()
@click.argument("component_id")
@click.option("--version", "version_id", default=None, help="Version to inspect (default: active)")
@workspace_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def deps(
    component_id: str,
    version_id: str | None,
    definitions: str | None,
    storage: str | None,
    output_json: bool,
):
    """Print the config/content/module dependencies of COMPONENT_ID."""
    ws = open_workspace(definitions, storage)
    try:
        report = ws.dependencies(component_id, version_id)
    except ComponentError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        ws.close()

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    if report.is_empty:
        console.print(f"[dim]{component_id} has no dependencies.[/dim]")
        return
    for kind, names in report.to_dict().items():
        if not names:
            continue
        console.print(f"[bold]{kind}[/bold]")
        for name in names:
            console.print(f"  {name}")


@click.command()
@workspace_options
@click.option("--usage", "usage_path", default=None, help="JSON map of tree id -> instance list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def reconcile(definitions: str | None, storage: str | None, usage_path: str | None, output_json: bool):
    """Discover definitions and apply component breakage or recovery.

    Components whose capability disappeared degrade to the fallback source.
    Unused ones are pruned only when --usage lists every stored tree.
    """
    from tessera.core.models import ComponentInstance
    from tessera.migration.usage import UsageIndex

    ws = open_workspace(definitions, storage)
    try:
        if usage_path:
            trees = read_json(usage_path)
            ws.usage = UsageIndex.from_trees({
                tree_id: [ComponentInstance.from_dict(i) for i in instances]
                for tree_id, instances in trees.items()
            })
        report = ws.reconcile()
        ws.save()
    finally:
        ws.close()

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    if not report.changed:
        console.print("[green]Components are up to date.[/green]")
    for label, ids, style in (
        ("created", report.created, "green"),
        ("updated", report.updated, "blue"),
        ("disabled", report.disabled, "yellow"),
        ("broken", report.broken, "red"),
        ("pruned", report.pruned, "red"),
        ("recovered", report.recovered, "green"),
    ):
        for component_id in ids:
            console.print(f"  [{style}]{label}[/{style}] {component_id}")
    for component_id, reasons in sorted(report.skipped.items()):
        console.print(f"  [dim]skipped {component_id}: {'; '.join(reasons)}[/dim]")
