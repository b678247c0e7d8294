"""Reusable guard predicates over a Project.

Guards are plain functions taking the Project explicitly. Project types wrap
them in a GuardTemplate together with a human-readable description; the
bound machine supplies the Project when it evaluates them. A missing phase
is treated as "not satisfied" rather than an error so that guard evaluation
during ``--list`` never aborts.
"""

from __future__ import annotations

from typing import Any

from sow.models import Artifact, Project


def latest_approved_output(project: Project, phase_name: str, artifact_type: str) -> Artifact | None:
    """Return the most recently added approved output of the given type, if any."""
    phase = project.phases.get(phase_name)
    if phase is None:
        return None
    for artifact in reversed(phase.outputs):
        if artifact.type == artifact_type and artifact.approved:
            return artifact
    return None


def phase_output_approved(project: Project, phase_name: str, artifact_type: str) -> bool:
    return latest_approved_output(project, phase_name, artifact_type) is not None


def has_approved_outputs(project: Project, phase_name: str) -> bool:
    """True when the phase has at least one output and every output is approved."""
    phase = project.phases.get(phase_name)
    if phase is None or not phase.outputs:
        return False
    return all(a.approved for a in phase.outputs)


def phase_metadata_bool(project: Project, phase_name: str, key: str) -> bool:
    phase = project.phases.get(phase_name)
    if phase is None:
        return False
    value: Any = phase.metadata.get(key)
    return value is True


def all_tasks_complete(project: Project, phase_name: str) -> bool:
    """True when the phase has tasks and each is completed or abandoned."""
    phase = project.phases.get(phase_name)
    if phase is None or not phase.tasks:
        return False
    return all(t.status in ("completed", "abandoned") for t in phase.tasks)
