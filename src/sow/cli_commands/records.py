"""CLI commands that mutate the project record: artifacts, phase metadata, tasks.

Each command is one load -> mutate -> save cycle. Saving re-validates the
record, so an artifact type outside a phase's allow-list or a metadata value
of the wrong type is rejected before anything is written.
"""

from __future__ import annotations

import json as json_mod
import logging
from typing import Any

import click

from sow.cli_common import fail, get_sow_dir, load_or_exit, parse_key_values, save_or_exit
from sow.models import TASK_STATUSES, Artifact, Phase, Task, now_iso
from sow.persistence import LoadedProject

logger = logging.getLogger(__name__)


def _phase_or_exit(loaded: LoadedProject, name: str, as_json: bool) -> Phase:
    try:
        return loaded.project.phases[name]
    except KeyError:
        known = ", ".join(loaded.config.phase_names())
        fail(f"phase not found: {name} (phases: {known})", as_json)


# ---------------------------------------------------------------------------
# artifact
# ---------------------------------------------------------------------------


@click.group()
def artifact() -> None:
    """Record and approve phase artifacts."""


@artifact.command("add")
@click.argument("phase_name")
@click.argument("artifact_type")
@click.argument("path")
@click.option("--input", "as_input", is_flag=True, help="Add as a phase input (default: output)")
@click.option("--approved", is_flag=True, help="Mark approved immediately")
@click.option("--meta", "-m", multiple=True, help="Metadata as key=value (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def artifact_add(
    phase_name: str,
    artifact_type: str,
    path: str,
    as_input: bool,
    approved: bool,
    meta: tuple[str, ...],
    as_json: bool,
) -> None:
    """Add an artifact to a phase's outputs (or inputs with --input)."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir, as_json)
    ph = _phase_or_exit(loaded, phase_name, as_json)
    new_artifact = Artifact(
        type=artifact_type,
        path=path,
        approved=approved,
        created_at=now_iso(),
        metadata=dict(parse_key_values(meta, as_json)),
    )
    collection = ph.inputs if as_input else ph.outputs
    index = collection.add(new_artifact)
    save_or_exit(loaded, sow_dir, as_json)
    kind = "input" if as_input else "output"
    logger.info("Added %s %s to %s", kind, artifact_type, phase_name, extra={"command": "artifact add"})
    if as_json:
        click.echo(json_mod.dumps({"phase": phase_name, "kind": kind, "index": index, **new_artifact.to_dict()}))
        return
    click.echo(f"Added {kind} [{index}] {artifact_type}: {path} to {phase_name}")


@artifact.command("approve")
@click.argument("phase_name")
@click.argument("index", type=int)
@click.option("--input", "as_input", is_flag=True, help="Approve an input (default: output)")
def artifact_approve(phase_name: str, index: int, as_input: bool) -> None:
    """Approve the artifact at INDEX in a phase's outputs (or inputs)."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir)
    ph = _phase_or_exit(loaded, phase_name, False)
    collection = ph.inputs if as_input else ph.outputs
    try:
        target = collection.get(index)
    except IndexError as e:
        fail(str(e))
    target.approved = True
    save_or_exit(loaded, sow_dir)
    click.echo(f"Approved {target.type}: {target.path}")


# ---------------------------------------------------------------------------
# phase
# ---------------------------------------------------------------------------


@click.group()
def phase() -> None:
    """Inspect and update phase metadata."""


@phase.command("set")
@click.argument("phase_name")
@click.argument("key")
@click.argument("value")
def phase_set(phase_name: str, key: str, value: str) -> None:
    """Set a phase metadata field. VALUE is parsed by the field's declared type."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir)
    ph = _phase_or_exit(loaded, phase_name, False)
    pc = loaded.config.phase(phase_name)
    schema = pc.field_schema(key) if pc is not None else None
    parsed: Any = value
    if schema is not None:
        try:
            parsed = schema.parse(value)
        except ValueError as e:
            fail(str(e))
    ph.metadata[key] = parsed
    save_or_exit(loaded, sow_dir)
    click.echo(f"Set {phase_name}.{key} = {parsed!r}")


@phase.command("show")
@click.argument("phase_name")
def phase_show(phase_name: str) -> None:
    """Show one phase record as JSON."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir)
    ph = _phase_or_exit(loaded, phase_name, True)
    click.echo(json_mod.dumps(ph.to_dict(), indent=2, default=str))


# ---------------------------------------------------------------------------
# task
# ---------------------------------------------------------------------------


@click.group()
def task() -> None:
    """Manage tasks on task-supporting phases."""


def _task_phase(loaded: LoadedProject, phase_name: str | None) -> str:
    name = phase_name or loaded.config.default_task_phase(loaded.state)
    if not name:
        fail(f"Project type '{loaded.config.name}' has no phase that supports tasks")
    pc = loaded.config.phase(name)
    if pc is None or not pc.supports_tasks:
        supporting = ", ".join(loaded.config.task_supporting_phases()) or "none"
        fail(f"phase {name} does not support tasks (task phases: {supporting})")
    return name


@task.command("add")
@click.argument("task_id")
@click.argument("name")
@click.option("--phase", "phase_name", default=None, help="Phase (default: derived from current state)")
@click.option("--agent", default="", help="Assigned agent role")
def task_add(task_id: str, name: str, phase_name: str | None, agent: str) -> None:
    """Add a task."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir)
    target = _task_phase(loaded, phase_name)
    now = now_iso()
    try:
        loaded.project.phases[target].tasks.add(
            Task(id=task_id, name=name, phase=target, assigned_agent=agent, created_at=now, updated_at=now)
        )
    except ValueError as e:
        fail(str(e))
    save_or_exit(loaded, sow_dir)
    click.echo(f"Added task {task_id} to {target}: {name}")


@task.command("update")
@click.argument("task_id")
@click.option("--status", type=click.Choice(sorted(TASK_STATUSES)), required=True, help="New status")
@click.option("--phase", "phase_name", default=None, help="Phase (default: derived from current state)")
def task_update(task_id: str, status: str, phase_name: str | None) -> None:
    """Change a task's status."""
    sow_dir = get_sow_dir()
    loaded = load_or_exit(sow_dir)
    target = _task_phase(loaded, phase_name)
    try:
        t = loaded.project.phases[target].tasks.get(task_id)
    except KeyError as e:
        fail(str(e.args[0]))
    now = now_iso()
    t.status = status
    t.updated_at = now
    if status == "in_progress" and not t.started_at:
        t.started_at = now
    if status == "completed":
        t.completed_at = now
    save_or_exit(loaded, sow_dir)
    click.echo(f"Task {task_id}: {status}")
