"""The exploration project type: open-ended research, then a summary PR.

Researching is an intent branch: the agent either finalizes or loops back
to Planning for another round of research. Nothing in the record says which
one is right, so ``sow advance`` with no event refuses to guess.
"""

from __future__ import annotations

from sow.actions import add_phase_input_from_output, increment_phase_iteration
from sow.builder import ProjectTypeConfigBuilder
from sow.guards import all_tasks_complete, has_approved_outputs, phase_metadata_bool
from sow.models import Project
from sow.typeconfig import FieldSchema, GuardTemplate, ProjectTypeConfig

TYPE_NAME = "exploration"

PLANNING = "Planning"
RESEARCHING = "Researching"
FINALIZING = "Finalizing"
COMPLETED = "Completed"

EVENT_BEGIN_RESEARCH = "begin_research"
EVENT_FINALIZE = "finalize"
EVENT_ADD_MORE_RESEARCH = "add_more_research"
EVENT_COMPLETE_FINALIZATION = "complete_finalization"


def _has_research_tasks(project: Project) -> bool:
    phase = project.phases.get("exploration")
    return phase is not None and any(t.status != "abandoned" for t in phase.tasks)


def _ready_to_finalize(project: Project) -> bool:
    return all_tasks_complete(project, "exploration") and has_approved_outputs(project, "exploration")


def _initialize(project: Project) -> None:
    project.phases["finalization"].enabled = False


def _enable_finalization(project: Project) -> None:
    project.phases["finalization"].enabled = True
    for artifact_type in ("summary", "findings"):
        add_phase_input_from_output(project, "exploration", "finalization", artifact_type)


def _next_round(project: Project) -> None:
    increment_phase_iteration(project, "exploration")


def _planning_prompt(project: Project) -> str:
    phase = project.phases["exploration"]
    round_note = f" Round {phase.iteration + 1}." if phase.iteration else ""
    return f"Plan research topics as tasks with 'sow task add'.{round_note}"


def _researching_prompt(project: Project) -> str:
    phase = project.phases["exploration"]
    open_tasks = [t.id for t in phase.tasks if t.status not in ("completed", "abandoned")]
    if open_tasks:
        return f"Research the open topics: {', '.join(open_tasks)}."
    return (
        "Research is done. Either 'sow advance finalize' once summaries are approved, "
        "or 'sow advance add_more_research' to plan another round."
    )


def _finalizing_prompt(project: Project) -> str:
    return "Open a pull request with the findings and set 'sow phase set finalization pr_created true'."


def new_exploration_config() -> ProjectTypeConfig:
    return (
        ProjectTypeConfigBuilder(TYPE_NAME)
        .with_description("Research and investigation producing summaries and findings")
        .with_phase(
            "exploration",
            start_state=PLANNING,
            end_state=RESEARCHING,
            outputs=("summary", "findings"),
            supports_tasks=True,
        )
        .with_phase(
            "finalization",
            start_state=FINALIZING,
            end_state=FINALIZING,
            inputs=("summary", "findings"),
            outputs=("pr",),
            metadata_schema=(
                FieldSchema("pr_created", "boolean", "Pull request opened"),
                FieldSchema("pr_url", "text", "URL of the pull request"),
            ),
        )
        .set_initial_state(PLANNING)
        .add_transition(
            PLANNING,
            RESEARCHING,
            EVENT_BEGIN_RESEARCH,
            guard=GuardTemplate("at least one research task planned", _has_research_tasks),
            description="Research plan ready, start researching",
        )
        .add_transition(
            RESEARCHING,
            FINALIZING,
            EVENT_FINALIZE,
            guard=GuardTemplate("all research tasks resolved and all outputs approved", _ready_to_finalize),
            on_entry=_enable_finalization,
            description="Research complete, publish the findings",
        )
        .add_transition(
            RESEARCHING,
            PLANNING,
            EVENT_ADD_MORE_RESEARCH,
            on_entry=_next_round,
            description="Plan another round of research",
        )
        .add_transition(
            FINALIZING,
            COMPLETED,
            EVENT_COMPLETE_FINALIZATION,
            guard=GuardTemplate(
                "pull request created",
                lambda p: phase_metadata_bool(p, "finalization", "pr_created"),
            ),
            description="Exploration complete",
        )
        .with_initializer(_initialize)
        .with_prompt(PLANNING, _planning_prompt)
        .with_prompt(RESEARCHING, _researching_prompt)
        .with_prompt(FINALIZING, _finalizing_prompt)
        .build()
    )
