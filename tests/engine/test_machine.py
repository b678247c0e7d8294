"""Tests for binding and firing: guards, phase hooks, and rollback."""

from __future__ import annotations

import pytest

from sow.builder import ProjectTypeConfigBuilder
from sow.errors import (
    EventNotConfigured,
    GuardEvaluationError,
    GuardNotSatisfied,
    TransitionHookError,
    ValidationError,
)
from sow.machine import bind
from sow.models import Project
from sow.typeconfig import GuardTemplate, ProjectTypeConfig
from tests._factory import make_linear_config, make_machine, new_project


def _boom(project: Project) -> None:
    project.phases["work"].metadata["touched"] = True
    msg = "hook exploded"
    raise RuntimeError(msg)


def _hooked_config(calls: list[str], *, fail_entry: bool = False) -> ProjectTypeConfig:
    def exit_work(project: Project) -> None:
        calls.append(f"exit:{project.phases['work'].status}")

    def enter_review(project: Project) -> None:
        calls.append(f"enter:{project.current_state}")

    return (
        ProjectTypeConfigBuilder("hooked")
        .with_phase("work", start_state="Draft", end_state="Draft")
        .with_phase("review", start_state="Review", end_state="Review")
        .set_initial_state("Draft")
        .add_transition("Draft", "Review", "submit", on_exit=exit_work, on_entry=_boom if fail_entry else enter_review)
        .add_transition("Review", "Draft", "rework", failed_phase="review")
        .add_transition("Review", "Done", "approve")
        .build()
    )


class TestBind:
    def test_unknown_state_rejected(self) -> None:
        cfg = make_linear_config()
        with pytest.raises(ValidationError, match="Nowhere"):
            bind(cfg, new_project(cfg), "Nowhere")

    def test_bind_does_not_mutate(self) -> None:
        cfg = make_linear_config()
        project = new_project(cfg)
        before = project.to_dict()
        bind(cfg, project, "Draft")
        assert project.to_dict() == before

    def test_one_config_many_projects(self) -> None:
        cfg = make_linear_config()
        a, b = new_project(cfg, "a"), new_project(cfg, "b")
        a.phases["work"].metadata["ready"] = True
        assert make_machine(cfg, a).can_fire("submit")
        assert not make_machine(cfg, b).can_fire("submit")

    def test_guard_sees_later_mutations(self) -> None:
        cfg = make_linear_config()
        machine = make_machine(cfg)
        assert machine.permitted_events() == []
        machine.project.phases["work"].metadata["ready"] = True
        assert machine.permitted_events() == ["submit"]


class TestFire:
    def test_unconfigured_event(self) -> None:
        machine = make_machine(make_linear_config())
        with pytest.raises(EventNotConfigured) as exc_info:
            machine.fire("approve")
        assert exc_info.value.available == ("submit",)
        assert "sow advance --list" in str(exc_info.value)

    def test_guard_blocks_without_mutation(self) -> None:
        machine = make_machine(make_linear_config())
        before = machine.project.to_dict()
        with pytest.raises(GuardNotSatisfied) as exc_info:
            machine.fire("submit")
        err = exc_info.value
        assert err.guard_description == "work marked ready"
        assert err.target_state == "Review"
        assert "--dry-run submit" in err.hint
        assert machine.state == "Draft"
        assert machine.project.to_dict() == before

    def test_fire_updates_state_and_phases(self) -> None:
        cfg = make_linear_config()
        machine = make_machine(cfg)
        machine.project.phases["work"].metadata["ready"] = True
        fired = machine.fire("submit")
        assert (fired.from_state, fired.to_state, fired.event) == ("Draft", "Review", "submit")
        assert machine.state == "Review"
        assert machine.project.statechart.current_state == "Review"
        assert machine.project.phases["work"].status == "completed"
        assert machine.project.phases["work"].completed_at
        assert machine.project.phases["review"].status == "in_progress"
        assert machine.project.phases["review"].started_at

    def test_hook_order(self) -> None:
        calls: list[str] = []
        machine = make_machine(_hooked_config(calls))
        machine.fire("submit")
        # User exit hook runs before the phase is completed; entry sees the new state.
        assert calls == ["exit:pending", "enter:Review"]

    def test_failed_phase_marked_failed(self) -> None:
        cfg = _hooked_config([])
        machine = make_machine(cfg)
        machine.fire("submit")
        machine.fire("rework")
        review = machine.project.phases["review"]
        assert review.status == "failed"
        assert review.failed_at
        assert machine.project.phases["work"].status == "in_progress"

    def test_reentry_keeps_first_started_at(self) -> None:
        machine = make_machine(_hooked_config([]))
        machine.fire("submit")
        first = machine.project.phases["review"].started_at
        machine.fire("rework")
        machine.fire("submit")
        assert machine.project.phases["review"].started_at == first
        assert machine.project.phases["review"].status == "in_progress"

    def test_hook_failure_rolls_back(self) -> None:
        machine = make_machine(_hooked_config([], fail_entry=True))
        project = machine.project
        before = project.to_dict()
        with pytest.raises(TransitionHookError) as exc_info:
            machine.fire("submit")
        assert "hook exploded" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert machine.state == "Draft"
        assert project.to_dict() == before
        assert "touched" not in project.phases["work"].metadata

    def test_rollback_keeps_guards_bound(self) -> None:
        cfg = (
            ProjectTypeConfigBuilder("g")
            .with_phase("work", start_state="A", end_state="A")
            .set_initial_state("A")
            .add_transition("A", "B", "bad", on_entry=_boom)
            .add_transition(
                "A", "C", "good", guard=GuardTemplate("ok flag", lambda p: p.phases["work"].metadata.get("ok") is True)
            )
            .build()
        )
        machine = make_machine(cfg)
        with pytest.raises(TransitionHookError):
            machine.fire("bad")
        machine.project.phases["work"].metadata["ok"] = True
        assert machine.can_fire("good")

    def test_guard_that_raises(self) -> None:
        cfg = (
            ProjectTypeConfigBuilder("g")
            .with_phase("work", start_state="A", end_state="A")
            .set_initial_state("A")
            .add_transition("A", "B", "go", guard=GuardTemplate("owner set", lambda p: p.phases["work"].metadata["owner"]))
            .build()
        )
        machine = make_machine(cfg)
        before = machine.project.to_dict()
        with pytest.raises(GuardEvaluationError) as exc_info:
            machine.fire("go")
        err = exc_info.value
        assert isinstance(err.cause, KeyError)
        assert err.event == "go"
        assert "guard 'owner set' failed in state A" in str(err)
        assert machine.state == "A"
        assert machine.project.to_dict() == before
        with pytest.raises(GuardEvaluationError):
            machine.permitted_events()


class TestQueries:
    def test_configured_vs_permitted(self) -> None:
        machine = make_machine(make_linear_config())
        assert machine.configured_events() == ["submit"]
        assert machine.permitted_events() == []
        assert not machine.can_fire("approve")

    def test_evaluate_guard(self) -> None:
        machine = make_machine(make_linear_config())
        assert machine.evaluate_guard("submit") is False
        machine.project.phases["work"].metadata["ready"] = True
        assert machine.evaluate_guard("submit") is True
        with pytest.raises(EventNotConfigured):
            machine.evaluate_guard("approve")

    def test_prompt_empty_without_generator(self) -> None:
        assert make_machine(make_linear_config()).prompt() == ""
