"""CLI for sow project workflows.

Convention-based: discovers .sow/ by walking up from cwd.

Usage:
    sow init                                     # Initialize .sow/ in cwd
    sow new "Add login" --branch feat/login      # Start a project
    sow status                                   # Current state and guidance
    sow advance                                  # Fire the obvious next event
    sow advance review_pass                      # Fire a specific event
    sow advance --list                           # Show every transition
    sow advance --dry-run finalize               # Check a guard without firing
    sow types                                    # List project types
    sow type-info standard                       # Show a type's workflow
    sow artifact add review review review.md     # Record an artifact
    sow phase set implementation planning_approved true
    sow task add 010 "Write parser"              # Add a task
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from pathlib import Path

import click

from sow import __version__
from sow.advance import (
    DryRunResult,
    TransitionListing,
    advance_auto,
    advance_explicit,
    dry_run,
    list_transitions,
    resolve_mode,
)
from sow.branching import is_intent_branch
from sow.cli_commands.records import artifact, phase, task
from sow.cli_commands.workflow import type_info, types_cmd
from sow.cli_common import fail, get_sow_dir, load_or_exit, save_or_exit
from sow.errors import AmbiguousIntent, TransitionError
from sow.logging import setup_logging, transition_fields
from sow.persistence import (
    SOW_DIR_NAME,
    create,
    default_config,
    detect_project_type,
    read_config,
    write_config,
)
from sow.registry import register_builtin_types

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="sow")
def cli() -> None:
    """sow: structured multi-phase project workflows."""
    register_builtin_types()


@cli.command()
def init() -> None:
    """Initialize .sow/ in the current directory."""
    cwd = Path.cwd()
    sow_dir = cwd / SOW_DIR_NAME

    if sow_dir.exists():
        click.echo(f"{SOW_DIR_NAME}/ already exists in {cwd}")
        return

    sow_dir.mkdir()
    write_config(sow_dir, default_config())
    setup_logging(sow_dir)
    logger.info("Initialized %s", sow_dir, extra={"command": "init"})

    click.echo(f"Initialized {SOW_DIR_NAME}/ in {cwd}")
    click.echo("\nNext: sow new \"<description>\" --branch <branch>")


@cli.command()
@click.argument("description")
@click.option("--branch", "-b", required=True, help="Branch the project lives on (prefix selects the type)")
@click.option("--type", "project_type", default=None, help="Project type (default: detected from branch)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def new(description: str, branch: str, project_type: str | None, as_json: bool) -> None:
    """Create a new project."""
    sow_dir = get_sow_dir()
    if project_type is None and detect_project_type(branch) == "standard":
        project_type = read_config(sow_dir).get("default_type", "standard")
    try:
        loaded = create(sow_dir, branch, description, project_type=project_type)
    except (ValueError, FileExistsError) as e:
        fail(str(e), as_json)

    project = loaded.project
    if as_json:
        click.echo(json_mod.dumps(project.to_dict(), indent=2, default=str))
        return
    click.echo(f"Created {project.name} ({project.type}) on {branch}")
    click.echo(f"  State: {loaded.state}")
    guidance = loaded.machine.prompt()
    if guidance:
        click.echo(f"\n{guidance}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show the active project's state, phases and guidance."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir, as_json)
    project, machine, config = loaded.project, loaded.machine, loaded.config

    if as_json:
        try:
            permitted = machine.permitted_events()
        except TransitionError as e:
            fail(str(e), as_json)
        data = {
            "project": project.to_dict(),
            "state": machine.state,
            "configured_events": machine.configured_events(),
            "permitted_events": permitted,
            "prompt": machine.prompt(),
        }
        click.echo(json_mod.dumps(data, indent=2, default=str))
        return

    click.echo(f"{project.name} ({project.type})")
    if project.branch:
        click.echo(f"  Branch: {project.branch}")
    click.echo(f"  State:  {machine.state}")
    click.echo("\n  Phases:")
    for name in config.phase_names():
        ph = project.phases[name]
        flags = "" if ph.enabled else " (disabled)"
        iteration = f" iteration {ph.iteration}" if ph.iteration else ""
        click.echo(f"    {name:<16} {ph.status}{iteration}{flags}")
    if is_intent_branch(config, machine.state):
        events = ", ".join(machine.configured_events())
        click.echo(f"\n  Choose the next step explicitly: sow advance <event> ({events})")
    if config.orchestrator_prompt is not None:
        click.echo(f"\n{config.orchestrator_prompt(project)}")
    guidance = machine.prompt()
    if guidance:
        click.echo(f"\n{guidance}")


# ---------------------------------------------------------------------------
# advance
# ---------------------------------------------------------------------------


def _echo_listing(listing: TransitionListing) -> None:
    click.echo(f"Current state: {listing.current_state}\n")
    if listing.is_terminal:
        click.echo("No transitions available from current state.")
        click.echo("This may be a terminal state.")
        return
    click.echo("Available transitions:\n")
    for o in listing.options:
        blocked = "  [BLOCKED]" if o.blocked else ""
        click.echo(f"  sow advance {o.event}{blocked}")
        click.echo(f"    → {o.to_state}")
        if o.description:
            click.echo(f"    {o.description}")
        if o.guard_description:
            click.echo(f"    Requires: {o.guard_description}")
        click.echo("")
    if listing.all_blocked:
        click.echo("(All configured transitions are currently blocked by guard conditions)")


def _echo_dry_run(result: DryRunResult) -> None:
    click.echo(f"Validating transition: {result.current_state} -> {result.event}\n")
    if result.valid:
        click.echo("✓ Transition is valid and can be executed\n")
        click.echo(f"Target state: {result.to_state}")
        if result.description:
            click.echo(f"Description: {result.description}")
        click.echo(f"\nTo execute: sow advance {result.event}")
        return
    click.echo("✗ Transition blocked by guard condition\n")
    if result.guard_description:
        click.echo(f"Guard description: {result.guard_description}")
    click.echo("Current status: Guard not satisfied")
    click.echo("\nFix the guard condition, then try again.")


def _report_transition_error(exc: TransitionError, as_json: bool) -> None:
    candidates = list(exc.candidates) if isinstance(exc, AmbiguousIntent) else []
    if as_json:
        data = {
            "error": str(exc),
            "kind": type(exc).__name__,
            "current_state": exc.current_state,
            "event": exc.event,
            "target_state": exc.target_state,
            "guard_description": exc.guard_description,
            "hint": exc.hint,
        }
        if candidates:
            data["candidates"] = candidates
        click.echo(json_mod.dumps(data, indent=2))
        return
    click.echo(f"Error: {exc}", err=True)
    click.echo(f"  Current state: {exc.current_state}", err=True)
    if exc.event:
        click.echo(f"  Event: {exc.event}", err=True)
    if exc.target_state:
        click.echo(f"  Target state: {exc.target_state}", err=True)
    if exc.guard_description:
        click.echo(f"  Guard: {exc.guard_description}", err=True)
    if candidates:
        click.echo("\nAvailable events:", err=True)
        for c in candidates:
            click.echo(f"  sow advance {c}", err=True)


@cli.command()
@click.argument("event", required=False)
@click.option("--list", "list_only", is_flag=True, help="List every transition from the current state")
@click.option("--dry-run", "dry_run_only", is_flag=True, help="Check EVENT's guard without firing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def advance(event: str | None, list_only: bool, dry_run_only: bool, as_json: bool) -> None:
    """Advance the project to its next state.

    With no EVENT the next event is chosen automatically; this fails when the
    current state offers a choice. Pass EVENT to fire it explicitly.
    """
    try:
        mode = resolve_mode(event, list_only=list_only, dry_run=dry_run_only)
    except ValueError as e:
        fail(str(e), as_json)

    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir, as_json)
    machine = loaded.machine

    try:
        if mode == "list":
            listing = list_transitions(machine)
        elif not event:
            result = advance_auto(machine)
        elif mode == "dry_run":
            preview = dry_run(machine, event)
        else:
            result = advance_explicit(machine, event)
    except TransitionError as e:
        fields = transition_fields(event, e.current_state, e.target_state, command="advance", error=str(e))
        logger.warning("advance failed: %s", e, extra=fields)
        _report_transition_error(e, as_json)
        sys.exit(1)
    except ValueError as e:
        fail(str(e), as_json)

    if mode == "list":
        if as_json:
            click.echo(json_mod.dumps(listing.to_dict(), indent=2))
        else:
            _echo_listing(listing)
        return

    if mode == "dry_run":
        if as_json:
            click.echo(json_mod.dumps(preview.to_dict(), indent=2))
        else:
            _echo_dry_run(preview)
        if not preview.valid:
            if not as_json:
                click.echo(f"\nError: transition '{event}' blocked by guard", err=True)
            sys.exit(1)
        return

    save_or_exit(loaded, sow_dir, as_json)
    if as_json:
        click.echo(json_mod.dumps(result.to_dict(), indent=2))
        return
    click.echo(f"Advanced: {result.from_state} -> {result.to_state} ({result.event})")
    guidance = machine.prompt()
    if guidance:
        click.echo(f"\n{guidance}")


cli.add_command(types_cmd)
cli.add_command(type_info)
cli.add_command(artifact)
cli.add_command(phase)
cli.add_command(task)


if __name__ == "__main__":
    cli()
