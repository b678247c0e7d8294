"""Record mutation helpers used by entry/exit hooks and CLI commands."""

from __future__ import annotations

import logging

from sow.models import Artifact, Project, now_iso

logger = logging.getLogger(__name__)


def increment_phase_iteration(project: Project, phase_name: str) -> int:
    """Bump a phase's iteration counter and return the new value."""
    phase = project.phases[phase_name]
    phase.iteration += 1
    logger.debug("Phase %s iteration -> %d", phase_name, phase.iteration)
    return phase.iteration


def mark_phase_failed(project: Project, phase_name: str) -> None:
    phase = project.phases[phase_name]
    phase.status = "failed"
    phase.failed_at = now_iso()


def mark_phase_completed(project: Project, phase_name: str) -> None:
    phase = project.phases[phase_name]
    phase.status = "completed"
    phase.completed_at = now_iso()


def mark_phase_in_progress(project: Project, phase_name: str) -> None:
    """Set a phase in progress, stamping ``started_at`` only on first start."""
    phase = project.phases[phase_name]
    phase.status = "in_progress"
    if not phase.started_at:
        phase.started_at = now_iso()


def add_phase_input_from_output(
    project: Project, source_phase: str, target_phase: str, artifact_type: str
) -> Artifact | None:
    """Copy the latest approved output of one phase into another phase's inputs.

    Returns the copied artifact, or None when the source has no approved
    output of that type. An input with the same path is not added twice.
    """
    source = project.phases[source_phase]
    target = project.phases[target_phase]
    for artifact in reversed(source.outputs):
        if artifact.type != artifact_type or not artifact.approved:
            continue
        if any(a.path == artifact.path for a in target.inputs):
            return None
        copied = Artifact(
            type=artifact.type,
            path=artifact.path,
            approved=True,
            created_at=artifact.created_at,
            metadata=dict(artifact.metadata),
        )
        target.inputs.add(copied)
        return copied
    return None
