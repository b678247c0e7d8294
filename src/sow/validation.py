"""Validation of a project record against its type configuration.

Pure functions -- no filesystem or Click dependencies. Run on every load
and again before every save so a malformed record is never written.
"""

from __future__ import annotations

from sow.errors import ValidationError
from sow.models import PHASE_STATUSES, TASK_STATUSES, ArtifactCollection, Phase, Project
from sow.typeconfig import PhaseConfig, ProjectTypeConfig


def _check_artifacts(artifacts: ArtifactCollection, allowed: tuple[str, ...], where: str) -> list[str]:
    # An empty allow-list accepts every artifact type.
    if not allowed:
        return []
    return [
        f"{where} artifact type '{a.type}' not allowed (allowed: {', '.join(allowed)})"
        for a in artifacts
        if a.type not in allowed
    ]


def _check_metadata(phase: Phase, pc: PhaseConfig) -> list[str]:
    # Phases without a schema may carry arbitrary metadata.
    if not pc.metadata_schema:
        return []
    errors: list[str] = []
    for key, value in phase.metadata.items():
        schema = pc.field_schema(key)
        if schema is None:
            known = ", ".join(f.name for f in pc.metadata_schema)
            errors.append(f"phase {pc.name}: unknown metadata field '{key}' (known fields: {known})")
            continue
        problem = schema.check(value)
        if problem:
            errors.append(f"phase {pc.name}: {problem}")
    return errors


def _check_phase(phase: Phase, pc: PhaseConfig) -> list[str]:
    errors: list[str] = []
    if phase.status not in PHASE_STATUSES:
        errors.append(f"phase {pc.name}: invalid status '{phase.status}'")
    errors.extend(_check_artifacts(phase.inputs, pc.allowed_inputs, f"phase {pc.name}: input"))
    errors.extend(_check_artifacts(phase.outputs, pc.allowed_outputs, f"phase {pc.name}: output"))
    if phase.tasks and not pc.supports_tasks:
        errors.append(f"phase {pc.name}: does not support tasks but has {len(phase.tasks)}")
    seen: set[str] = set()
    for task in phase.tasks:
        if task.id in seen:
            errors.append(f"phase {pc.name}: duplicate task id '{task.id}'")
        seen.add(task.id)
        if task.status not in TASK_STATUSES:
            errors.append(f"phase {pc.name}: task {task.id} has invalid status '{task.status}'")
    errors.extend(_check_metadata(phase, pc))
    return errors


def validate_project(project: Project, config: ProjectTypeConfig) -> list[str]:
    """Return every mismatch between ``project`` and ``config``. Empty means valid."""
    errors: list[str] = []
    if project.type != config.name:
        errors.append(f"project type '{project.type}' does not match configuration '{config.name}'")
    if project.current_state not in config.states():
        errors.append(f"current state {project.current_state} is not a state of project type '{config.name}'")

    declared = set(config.phase_names())
    for name in config.phase_names():
        if name not in project.phases:
            errors.append(f"missing required phase '{name}'")
    for name in project.phases.names():
        if name not in declared:
            errors.append(f"unexpected phase '{name}'")

    for pc in config.phases:
        phase = project.phases.get(pc.name)
        if phase is not None:
            errors.extend(_check_phase(phase, pc))
    return errors


def check_project(project: Project, config: ProjectTypeConfig) -> None:
    """Raise ValidationError if ``project`` does not match ``config``."""
    errors = validate_project(project, config)
    if errors:
        raise ValidationError(errors, project=project.name)
