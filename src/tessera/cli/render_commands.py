"""Tree commands — tessera validate, tessera render."""

from __future__ import annotations

import json
import sys

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from tessera.cli.main import console, open_workspace, read_json, workspace_options
from tessera.core.errors import ComponentError, StructuralError
from tessera.core.models import ComponentInstance


def load_instances(path: str) -> list[ComponentInstance]:
    """Read a flat instance list, either bare or under a ``components`` key."""
    data = read_json(path)
    if isinstance(data, dict):
        data = data.get("components", [])
    if not isinstance(data, list):
        console.print(f"[red]Error:[/red] {path} must contain a list of component instances")
        sys.exit(1)
    return [ComponentInstance.from_dict(item) for item in data]


def load_host(path: str | None):
    if path is None:
        return None
    from tessera.props.host import HostEntity

    return HostEntity.from_dict(read_json(path))


@click.command()
@click.argument("tree_path", metavar="TREE_JSON")
@click.option("--host", "host_path", default=None, help="Host entity JSON for dynamic props")
@click.option("--no-dynamic", is_flag=True, help="Reject dynamic prop sources")
@workspace_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def validate(
    tree_path: str,
    host_path: str | None,
    no_dynamic: bool,
    definitions: str | None,
    storage: str | None,
    output_json: bool,
):
    """Check a component tree's structure and inputs.

    Exits with status 1 when any violation has error severity.
    """
    instances = load_instances(tree_path)
    host = load_host(host_path)
    ws = open_workspace(definitions, storage)
    try:
        result = ws.validate(instances, host=host, allow_dynamic=not no_dynamic)
    finally:
        ws.close()

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.passed:
        console.print(f"[green]Valid[/green] — {len(instances)} component instance(s)")
    else:
        table = Table(title=f"Violations ({len(result.violations)})", box=box.ROUNDED)
        table.add_column("Type", style="bold")
        table.add_column("Path", style="dim", no_wrap=True)
        table.add_column("Message")
        for v in result.violations:
            style = "red" if v.severity == "error" else "yellow"
            table.add_row(f"[{style}]{v.violation_type}[/{style}]", v.path, v.message)
        console.print(table)

    if not result.passed:
        sys.exit(1)


@click.command()
@click.argument("tree_path", metavar="TREE_JSON")
@click.option("--host", "host_path", default=None, help="Host entity JSON for dynamic props")
@click.option("--preview", is_flag=True, help="Render for an editor preview")
@click.option("--field", "field_name", default="components", help="Host field holding the tree")
@workspace_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def render(
    tree_path: str,
    host_path: str | None,
    preview: bool,
    field_name: str,
    definitions: str | None,
    storage: str | None,
    output_json: bool,
):
    """Render a component tree and print its markup and cache metadata."""
    instances = load_instances(tree_path)
    host = load_host(host_path)
    ws = open_workspace(definitions, storage)
    try:
        result = ws.render(instances, host=host, is_preview=preview or None, field_name=field_name)
    except (StructuralError, ComponentError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        ws.close()

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(result.markup)
    cache = result.cache.to_dict()
    console.print(
        Panel(
            f"[bold]tags:[/bold] {', '.join(cache['tags']) or '-'}\n"
            f"[bold]contexts:[/bold] {', '.join(cache['contexts']) or '-'}\n"
            f"[bold]max-age:[/bold] {cache['max-age']}",
            title="Cacheability",
            border_style="dim",
        )
    )
    for failure in result.failures:
        console.print(f"[red]failed[/red] {failure.uuid} ({failure.component_id}): {failure.error}")
