"""Tests for the project record model and its collections."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from sow.errors import ValidationError
from sow.models import (
    Artifact,
    ArtifactCollection,
    Phase,
    PhaseCollection,
    Project,
    Statechart,
    Task,
    TaskCollection,
)


class TestArtifactCollection:
    def test_add_returns_index(self) -> None:
        coll = ArtifactCollection()
        assert coll.add(Artifact(type="doc", path="a.md")) == 0
        assert coll.add(Artifact(type="doc", path="b.md")) == 1

    def test_get_out_of_range(self) -> None:
        coll = ArtifactCollection([Artifact(type="doc", path="a.md")])
        with pytest.raises(IndexError, match="index out of range: 5"):
            coll.get(5)
        with pytest.raises(IndexError, match="index out of range: -1"):
            coll.get(-1)

    def test_remove_at(self) -> None:
        coll = ArtifactCollection([Artifact(type="doc", path="a.md"), Artifact(type="doc", path="b.md")])
        removed = coll.remove_at(0)
        assert removed.path == "a.md"
        assert [a.path for a in coll] == ["b.md"]

    def test_of_type(self) -> None:
        coll = ArtifactCollection([Artifact(type="doc", path="a.md"), Artifact(type="review", path="r.md")])
        assert [a.path for a in coll.of_type("review")] == ["r.md"]


class TestTaskCollection:
    def test_duplicate_id_rejected(self) -> None:
        coll = TaskCollection()
        coll.add(Task(id="010", name="First"))
        with pytest.raises(ValueError, match="task already exists: 010"):
            coll.add(Task(id="010", name="Again"))

    def test_get_missing(self) -> None:
        with pytest.raises(KeyError, match="task not found: 999"):
            TaskCollection().get("999")

    def test_remove_id(self) -> None:
        coll = TaskCollection([Task(id="010", name="a"), Task(id="020", name="b")])
        coll.remove_id("010")
        assert [t.id for t in coll] == ["020"]


class TestPhaseCollection:
    def test_missing_phase_message(self) -> None:
        with pytest.raises(KeyError, match="phase not found: nope"):
            PhaseCollection()["nope"]

    def test_get_returns_none(self) -> None:
        assert PhaseCollection().get("nope") is None

    def test_names_sorted(self) -> None:
        coll = PhaseCollection(zeta=Phase(), alpha=Phase())
        assert coll.names() == ["alpha", "zeta"]


class TestProjectDict:
    def _project(self) -> Project:
        phase = Phase(status="in_progress", started_at="2026-01-01T00:00:00+00:00", iteration=2)
        phase.outputs.add(Artifact(type="doc", path="d.md", approved=True, metadata={"k": "v"}))
        phase.tasks.add(Task(id="010", name="Write", status="completed", phase="work"))
        phase.metadata["ready"] = True
        return Project(
            name="demo",
            type="linear",
            statechart=Statechart(current_state="Draft", updated_at="2026-01-01T00:00:00+00:00"),
            phases=PhaseCollection(work=phase, review=Phase()),
            branch="feat/demo",
            description="Demo",
        )

    def test_round_trip(self) -> None:
        project = self._project()
        again = Project.from_dict(project.to_dict())
        assert again == project

    def test_phases_serialized_in_name_order(self) -> None:
        data = self._project().to_dict()
        assert list(data["phases"]) == ["review", "work"]

    def test_unset_optionals_omitted(self) -> None:
        data = Phase().to_dict()
        assert "started_at" not in data
        assert "iteration" not in data
        assert "metadata" not in data
        assert data["inputs"] == []

    def test_missing_required_fields(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Project.from_dict({"name": "x"})
        assert any("type" in e for e in exc_info.value.errors)
        assert any("statechart" in e for e in exc_info.value.errors)

    def test_empty_current_state_rejected(self) -> None:
        with pytest.raises(ValidationError, match="current_state"):
            Project.from_dict({"name": "x", "type": "t", "statechart": {"current_state": ""}})

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must be a mapping"):
            Project.from_dict(["not", "a", "mapping"])

    def test_artifact_missing_path(self) -> None:
        with pytest.raises(ValidationError, match="path"):
            Artifact.from_dict({"type": "doc"})

    def test_non_boolean_approved_rejected(self) -> None:
        with pytest.raises(ValidationError, match="approved must be a boolean"):
            Artifact.from_dict({"type": "doc", "path": "d.md", "approved": "false"})

    def test_non_boolean_enabled_rejected(self) -> None:
        with pytest.raises(ValidationError, match=r"phases.review.enabled must be a boolean"):
            Phase.from_dict({"status": "pending", "enabled": "no"}, "phases.review")

    def test_loaded_keys_written_back(self) -> None:
        raw = {
            "status": "pending",
            "enabled": True,
            "iteration": 0,
            "metadata": {},
            "tasks": [{"id": "010", "name": "Parse"}],
        }
        assert Phase.from_dict(raw).to_dict() == raw

    def test_absent_keys_stay_absent(self) -> None:
        raw = {"type": "doc", "path": "d.md"}
        assert Artifact.from_dict(raw).to_dict() == raw
        assert Phase.from_dict({"status": "pending"}).to_dict() == {"status": "pending"}

    def test_new_task_records_iteration(self) -> None:
        assert Task(id="010", name="Parse").to_dict()["iteration"] == 1

    def test_datetime_timestamps_normalized(self) -> None:
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        phase = Phase.from_dict({"status": "pending", "created_at": when})
        assert phase.created_at == when.isoformat()

    def test_current_state_property(self) -> None:
        assert self._project().current_state == "Draft"
