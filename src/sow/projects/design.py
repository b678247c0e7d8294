"""The design project type: produce design documents, then publish them."""

from __future__ import annotations

from sow.builder import ProjectTypeConfigBuilder
from sow.guards import has_approved_outputs, phase_metadata_bool
from sow.models import Project
from sow.typeconfig import FieldSchema, GuardTemplate, ProjectTypeConfig

TYPE_NAME = "design"

ACTIVE = "Active"
FINALIZING = "Finalizing"
COMPLETED = "Completed"

EVENT_COMPLETE_DESIGN = "complete_design"
EVENT_COMPLETE_FINALIZATION = "complete_finalization"


def _initialize(project: Project) -> None:
    project.phases["finalization"].enabled = False


def _enable_finalization(project: Project) -> None:
    project.phases["finalization"].enabled = True


def _active_prompt(project: Project) -> str:
    outputs = project.phases["design"].outputs
    pending = [a.path for a in outputs if not a.approved]
    if not outputs:
        return "Draft design documents and register them with 'sow artifact add design <type> <path>'."
    if pending:
        return f"Waiting for approval: {', '.join(pending)}."
    return "All design documents approved. Run 'sow advance'."


def _finalizing_prompt(project: Project) -> str:
    return "Move documents into place, open a pull request, then set 'sow phase set finalization pr_created true'."


def new_design_config() -> ProjectTypeConfig:
    return (
        ProjectTypeConfigBuilder(TYPE_NAME)
        .with_description("Design documents, ADRs and architecture write-ups")
        .with_phase(
            "design",
            start_state=ACTIVE,
            end_state=ACTIVE,
            inputs=("context", "reference"),
            outputs=("design", "adr", "architecture", "diagram", "spec"),
            supports_tasks=True,
        )
        .with_phase(
            "finalization",
            start_state=FINALIZING,
            end_state=FINALIZING,
            outputs=("pr",),
            metadata_schema=(
                FieldSchema("pr_created", "boolean", "Pull request opened"),
                FieldSchema("pr_url", "text", "URL of the pull request"),
            ),
        )
        .set_initial_state(ACTIVE)
        .add_transition(
            ACTIVE,
            FINALIZING,
            EVENT_COMPLETE_DESIGN,
            guard=GuardTemplate("all design documents approved", lambda p: has_approved_outputs(p, "design")),
            on_entry=_enable_finalization,
            description="Design documents approved, publish them",
        )
        .add_transition(
            FINALIZING,
            COMPLETED,
            EVENT_COMPLETE_FINALIZATION,
            guard=GuardTemplate(
                "pull request created",
                lambda p: phase_metadata_bool(p, "finalization", "pr_created"),
            ),
            description="Design complete",
        )
        .with_initializer(_initialize)
        .with_prompt(ACTIVE, _active_prompt)
        .with_prompt(FINALIZING, _finalizing_prompt)
        .build()
    )
