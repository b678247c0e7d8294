"""The standard project type: implementation, review, and finalize.

Lifecycle::

    ImplementationPlanning -> ImplementationDraftPRCreation -> ImplementationExecuting
        -> ReviewActive --pass--> FinalizeChecks -> FinalizePRReady -> FinalizePRChecks
                        \\-fail--> ImplementationPlanning (rework)
        FinalizeCleanup -> NoProject

Review is a discriminated branch on the latest approved review artifact's
``assessment`` metadata. A failed review marks the review phase failed and
bumps the implementation iteration before rework starts.
"""

from __future__ import annotations

from sow.actions import increment_phase_iteration
from sow.branching import branch_on, when
from sow.builder import ProjectTypeConfigBuilder
from sow.guards import (
    all_tasks_complete,
    latest_approved_output,
    phase_metadata_bool,
    phase_output_approved,
)
from sow.models import Project
from sow.typeconfig import FieldSchema, GuardTemplate, ProjectTypeConfig

TYPE_NAME = "standard"

# -- States -----------------------------------------------------------------

IMPLEMENTATION_PLANNING = "ImplementationPlanning"
IMPLEMENTATION_DRAFT_PR_CREATION = "ImplementationDraftPRCreation"
IMPLEMENTATION_EXECUTING = "ImplementationExecuting"
REVIEW_ACTIVE = "ReviewActive"
FINALIZE_CHECKS = "FinalizeChecks"
FINALIZE_PR_READY = "FinalizePRReady"
FINALIZE_PR_CHECKS = "FinalizePRChecks"
FINALIZE_CLEANUP = "FinalizeCleanup"
NO_PROJECT = "NoProject"

# -- Events -----------------------------------------------------------------

EVENT_PLANNING_COMPLETE = "planning_complete"
EVENT_DRAFT_PR_CREATED = "draft_pr_created"
EVENT_ALL_TASKS_COMPLETE = "all_tasks_complete"
EVENT_REVIEW_PASS = "review_pass"
EVENT_REVIEW_FAIL = "review_fail"
EVENT_CHECKS_DONE = "checks_done"
EVENT_PR_READY = "pr_ready"
EVENT_PR_CHECKS_PASS = "pr_checks_pass"
EVENT_CLEANUP_COMPLETE = "cleanup_complete"


# -- Guards and discriminator -----------------------------------------------


def review_assessment(project: Project) -> str:
    """Assessment of the latest approved review, or '' when there is none."""
    review = latest_approved_output(project, "review", "review")
    if review is None:
        return ""
    return str(review.metadata.get("assessment", ""))


def _review_is(assessment: str) -> GuardTemplate:
    return GuardTemplate(
        f"latest approved review has assessment '{assessment}'",
        lambda p: review_assessment(p) == assessment,
    )


def _start_rework(project: Project) -> None:
    increment_phase_iteration(project, "implementation")


# -- Prompts ----------------------------------------------------------------


def _implementation_planning_prompt(project: Project) -> str:
    iteration = project.phases["implementation"].iteration
    rework = f" (rework iteration {iteration})" if iteration else ""
    return (
        f"Plan the implementation of '{project.description or project.name}'{rework}.\n"
        "Break the work into tasks with 'sow task add', then set "
        "'sow phase set implementation planning_approved true'."
    )


def _draft_pr_prompt(project: Project) -> str:
    return (
        f"Open a draft pull request for branch {project.branch or '(unknown)'}, then record it with "
        "'sow phase set implementation draft_pr_created true'."
    )


def _executing_prompt(project: Project) -> str:
    tasks = project.phases["implementation"].tasks
    done = sum(1 for t in tasks if t.status in ("completed", "abandoned"))
    return f"Execute implementation tasks ({done}/{len(tasks)} complete)."


def _review_prompt(project: Project) -> str:
    return (
        "Review the implementation. Add a review output with assessment=pass or assessment=fail "
        "and approve it, then run 'sow advance'."
    )


def _finalize_checks_prompt(project: Project) -> str:
    return "Run final checks (tests, linters, documentation) and advance when they pass."


def _pr_ready_prompt(project: Project) -> str:
    return "Write the pull request body as a 'pr_body' output and approve it."


def _pr_checks_prompt(project: Project) -> str:
    return "Wait for pull request checks, then set 'sow phase set finalize pr_checks_passed true'."


def _cleanup_prompt(project: Project) -> str:
    return "Clean up project files and set 'sow phase set finalize project_deleted true'."


def _orchestrator_prompt(project: Project) -> str:
    return (
        "Standard project: plan and execute implementation tasks, pass review, then finalize "
        "the pull request. Use 'sow advance --list' to see what is possible from the current state."
    )


# -- Configuration ----------------------------------------------------------


def new_standard_config() -> ProjectTypeConfig:
    builder = ProjectTypeConfigBuilder(TYPE_NAME).with_description(
        "Implementation work delivered through a reviewed pull request"
    )
    builder = (
        builder.with_phase(
            "implementation",
            start_state=IMPLEMENTATION_PLANNING,
            end_state=IMPLEMENTATION_EXECUTING,
            inputs=("context", "review", "reference"),
            outputs=("task_list",),
            supports_tasks=True,
            metadata_schema=(
                FieldSchema("planning_approved", "boolean", "Task breakdown approved by a human"),
                FieldSchema("draft_pr_created", "boolean", "Draft pull request exists"),
                FieldSchema("pr_url", "text", "URL of the pull request"),
            ),
        )
        .with_phase(
            "review",
            start_state=REVIEW_ACTIVE,
            end_state=REVIEW_ACTIVE,
            outputs=("review",),
        )
        .with_phase(
            "finalize",
            start_state=FINALIZE_CHECKS,
            end_state=FINALIZE_CLEANUP,
            outputs=("pr_body", "documentation"),
            metadata_schema=(
                FieldSchema("pr_checks_passed", "boolean", "Pull request checks are green"),
                FieldSchema("project_deleted", "boolean", "Project files removed from the branch"),
            ),
        )
        .set_initial_state(IMPLEMENTATION_PLANNING)
    )

    builder = (
        builder.add_transition(
            IMPLEMENTATION_PLANNING,
            IMPLEMENTATION_DRAFT_PR_CREATION,
            EVENT_PLANNING_COMPLETE,
            guard=GuardTemplate(
                "implementation planning approved",
                lambda p: phase_metadata_bool(p, "implementation", "planning_approved"),
            ),
            description="Task breakdown approved, create the draft pull request",
        )
        .add_transition(
            IMPLEMENTATION_DRAFT_PR_CREATION,
            IMPLEMENTATION_EXECUTING,
            EVENT_DRAFT_PR_CREATED,
            guard=GuardTemplate(
                "draft pull request created",
                lambda p: phase_metadata_bool(p, "implementation", "draft_pr_created"),
            ),
            description="Draft pull request exists, start executing tasks",
        )
        .add_transition(
            IMPLEMENTATION_EXECUTING,
            REVIEW_ACTIVE,
            EVENT_ALL_TASKS_COMPLETE,
            guard=GuardTemplate(
                "all implementation tasks completed",
                lambda p: all_tasks_complete(p, "implementation"),
            ),
            description="Complete implementation and move to review",
        )
        .add_branch(
            REVIEW_ACTIVE,
            branch_on(review_assessment),
            when(
                "pass",
                EVENT_REVIEW_PASS,
                FINALIZE_CHECKS,
                guard=_review_is("pass"),
                description="Review passed, proceed to finalization",
            ),
            when(
                "fail",
                EVENT_REVIEW_FAIL,
                IMPLEMENTATION_PLANNING,
                guard=_review_is("fail"),
                description="Review failed, return to implementation for rework",
                on_entry=_start_rework,
                failed_phase="review",
            ),
        )
        .add_transition(
            FINALIZE_CHECKS,
            FINALIZE_PR_READY,
            EVENT_CHECKS_DONE,
            description="Final checks done, prepare the pull request body",
        )
        .add_transition(
            FINALIZE_PR_READY,
            FINALIZE_PR_CHECKS,
            EVENT_PR_READY,
            guard=GuardTemplate(
                "pull request body approved",
                lambda p: phase_output_approved(p, "finalize", "pr_body"),
            ),
            description="Pull request body approved, wait for checks",
        )
        .add_transition(
            FINALIZE_PR_CHECKS,
            FINALIZE_CLEANUP,
            EVENT_PR_CHECKS_PASS,
            guard=GuardTemplate(
                "pull request checks passed",
                lambda p: phase_metadata_bool(p, "finalize", "pr_checks_passed"),
            ),
            description="Checks passed, clean up project files",
        )
        .add_transition(
            FINALIZE_CLEANUP,
            NO_PROJECT,
            EVENT_CLEANUP_COMPLETE,
            guard=GuardTemplate(
                "project files deleted",
                lambda p: phase_metadata_bool(p, "finalize", "project_deleted"),
            ),
            description="Project complete",
        )
    )

    return (
        builder.with_prompt(IMPLEMENTATION_PLANNING, _implementation_planning_prompt)
        .with_prompt(IMPLEMENTATION_DRAFT_PR_CREATION, _draft_pr_prompt)
        .with_prompt(IMPLEMENTATION_EXECUTING, _executing_prompt)
        .with_prompt(REVIEW_ACTIVE, _review_prompt)
        .with_prompt(FINALIZE_CHECKS, _finalize_checks_prompt)
        .with_prompt(FINALIZE_PR_READY, _pr_ready_prompt)
        .with_prompt(FINALIZE_PR_CHECKS, _pr_checks_prompt)
        .with_prompt(FINALIZE_CLEANUP, _cleanup_prompt)
        .with_orchestrator_prompt(_orchestrator_prompt)
        .build()
    )
