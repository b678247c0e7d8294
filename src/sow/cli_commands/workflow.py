"""CLI commands for project type introspection: types, type-info."""

from __future__ import annotations

import json as json_mod
import sys

import click

from sow.errors import UnknownProjectType
from sow.registry import default_registry


@click.command("types")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def types_cmd(as_json: bool) -> None:
    """List all registered project types."""
    types_list = [
        {
            "type": cfg.name,
            "description": cfg.description,
            "initial_state": cfg.initial_state,
            "phases": cfg.phase_names(),
        }
        for cfg in default_registry().list_types()
    ]

    if as_json:
        click.echo(json_mod.dumps(types_list, indent=2))
        return

    for t in types_list:
        phases = " → ".join(t["phases"])
        click.echo(f"  {t['type']:<13} {phases}")
        if t["description"]:
            click.echo(f"  {'':<13} {t['description']}")


@click.command("type-info")
@click.argument("type_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def type_info(type_name: str, as_json: bool) -> None:
    """Show the full workflow definition for a project type."""
    try:
        cfg = default_registry().get(type_name)
    except UnknownProjectType as e:
        click.echo(f"Unknown type: {type_name} ({e})", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json_mod.dumps(cfg.to_dict(), indent=2))
        return

    click.echo(f"{cfg.name}: {cfg.description}")
    click.echo(f"  Initial state: {cfg.initial_state}")
    click.echo("\n  Phases:")
    for p in cfg.phases:
        span = p.start_state if p.start_state == p.end_state else f"{p.start_state} .. {p.end_state}"
        tasks = " (tasks)" if p.supports_tasks else ""
        click.echo(f"    {p.name:<16} {span}{tasks}")
        if p.allowed_outputs:
            click.echo(f"      outputs: {', '.join(p.allowed_outputs)}")
        for f in p.metadata_schema:
            click.echo(f"      {f.name}: {f.type}, {f.description}")
    click.echo("\n  Transitions:")
    for t in cfg.transitions:
        guard = f"  [requires: {t.guard_description}]" if t.guard_description else ""
        branch = " (branch)" if cfg.is_branching_state(t.from_state) else ""
        click.echo(f"    {t.from_state} → {t.to_state}  ({t.event}){branch}{guard}")
