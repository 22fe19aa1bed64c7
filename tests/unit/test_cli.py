"""Unit tests for Tessera CLI commands."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from tessera.cli.main import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace_env(monkeypatch, tmp_path, definitions_dir):
    """Point settings at a temporary storage directory and the on-disk definitions."""
    monkeypatch.setenv("TESSERA_STORAGE_DIR", str(tmp_path / ".tessera"))
    monkeypatch.setenv("TESSERA_DEFINITIONS_DIR", str(definitions_dir))
    return tmp_path


@pytest.fixture
def reconciled(runner, workspace_env):
    result = runner.invoke(main, ["reconcile"])
    assert result.exit_code == 0, result.output
    return workspace_env


def write_tree(path, instances) -> str:
    path.write_text(json.dumps(instances))
    return str(path)


@pytest.mark.parametrize("command", ["components", "versions", "deps", "reconcile", "validate", "render"])
def test_command_exists(runner, command):
    """Every subcommand has help."""
    result = runner.invoke(main, [command, "--help"])
    assert result.exit_code == 0


def test_main_help(runner):
    """tessera --help shows group help."""
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "versioned component trees" in result.output


def test_components_empty(runner, workspace_env):
    """Before reconciling nothing is registered."""
    result = runner.invoke(main, ["components"])
    assert result.exit_code == 0
    assert "No components registered" in result.output


def test_reconcile_json(runner, workspace_env):
    result = runner.invoke(main, ["reconcile", "--json"])
    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert {"tpl.demo.card", "js.counter"} <= set(report["created"])
    assert "block.page_title_block" in report["skipped"]


def test_reconcile_twice(runner, reconciled):
    result = runner.invoke(main, ["reconcile"])
    assert result.exit_code == 0
    assert "up to date" in result.output


def test_reconcile_lost_definition_without_usage(runner, reconciled, definitions_dir):
    """Without --usage a component whose definition disappeared is kept on fallback."""
    (definitions_dir / "demo" / "card.component.yml").unlink()
    result = runner.invoke(main, ["reconcile", "--json"])
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["broken"] == ["tpl.demo.card"]
    assert report["pruned"] == []


def test_reconcile_lost_definition_with_usage(runner, reconciled, definitions_dir):
    (definitions_dir / "demo" / "card.component.yml").unlink()
    usage = write_tree(reconciled / "usage.json", {})
    result = runner.invoke(main, ["reconcile", "--usage", usage, "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["pruned"] == ["tpl.demo.card"]


def test_components_json(runner, reconciled):
    """Reconciled components are persisted between invocations."""
    result = runner.invoke(main, ["components", "--json"])
    assert result.exit_code == 0
    by_id = {c["id"]: c for c in json.loads(result.stdout)}
    assert by_id["tpl.demo.card"]["status"] == "active"
    assert by_id["tpl.demo.card"]["source"] == "tpl"
    assert len(by_id["tpl.demo.card"]["active_version"]) == 16


def test_components_table(runner, reconciled):
    result = runner.invoke(main, ["components"])
    assert result.exit_code == 0
    assert "tpl.demo.card" in result.output


def test_versions(runner, reconciled):
    result = runner.invoke(main, ["versions", "tpl.demo.card", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["history"] == [data["active_version"]]


def test_versions_unknown_component(runner, reconciled):
    result = runner.invoke(main, ["versions", "tpl.demo.nope"])
    assert result.exit_code == 1
    assert "Unknown component: tpl.demo.nope" in result.output


def test_deps(runner, reconciled):
    result = runner.invoke(main, ["deps", "js.counter", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["config"] == ["tessera.js_component.counter"]


def test_validate_valid(runner, reconciled):
    tree = write_tree(reconciled / "tree.json", [{"uuid": "c", "component_id": "tpl.demo.card"}])
    result = runner.invoke(main, ["validate", tree])
    assert result.exit_code == 0
    assert "1 component instance(s)" in result.output


def test_validate_invalid_exits_nonzero(runner, reconciled):
    tree = write_tree(
        reconciled / "tree.json",
        {"components": [{"uuid": "c", "component_id": "tpl.demo.card", "inputs": {"nope": 1}}]},
    )
    result = runner.invoke(main, ["validate", tree, "--json"])
    assert result.exit_code == 1
    assert json.loads(result.stdout)["violations"][0]["path"] == "0.inputs.nope"


def test_validate_missing_file(runner, reconciled):
    result = runner.invoke(main, ["validate", str(reconciled / "missing.json")])
    assert result.exit_code == 1
    assert "Error reading" in result.output


def test_render(runner, reconciled):
    tree = write_tree(reconciled / "tree.json", [{"uuid": "c", "component_id": "tpl.demo.card", "inputs": {"title": "Hi"}}])
    result = runner.invoke(main, ["render", tree])
    assert result.exit_code == 0
    assert '<article class="card"><h2>Hi</h2><p>Body text</p></article>' in result.output
    assert "config:component.tpl.demo.card" in result.output


def test_render_preview_json(runner, reconciled):
    tree = write_tree(reconciled / "tree.json", [{"uuid": "c", "component_id": "tpl.demo.card"}])
    result = runner.invoke(main, ["render", tree, "--preview", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["markup"].startswith("<!-- tessera-start-c -->")
    assert data["failures"] == []


def test_render_structural_error(runner, reconciled):
    tree = write_tree(
        reconciled / "tree.json",
        [{"uuid": "c", "component_id": "tpl.demo.card", "parent_uuid": "ghost", "slot": "body"}],
    )
    result = runner.invoke(main, ["render", tree])
    assert result.exit_code == 1
    assert "Invalid component tree" in result.output


def test_definitions_option(runner, tmp_path, definitions_dir):
    """--definitions and --storage override settings."""
    storage = str(tmp_path / "store")
    result = runner.invoke(main, ["reconcile", "--definitions", str(definitions_dir), "--storage", storage, "--json"])
    assert result.exit_code == 0
    assert "tpl.demo.card" in json.loads(result.stdout)["created"]
