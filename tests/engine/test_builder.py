"""Tests for ProjectTypeConfigBuilder and ProjectTypeConfig introspection."""

from __future__ import annotations

import pytest

from sow.branching import branch_on, when
from sow.builder import ProjectTypeConfigBuilder
from sow.errors import ConfigurationError
from sow.typeconfig import FieldSchema
from tests._factory import make_linear_config


def _base(name: str = "t") -> ProjectTypeConfigBuilder:
    return ProjectTypeConfigBuilder(name).with_phase("work", start_state="A", end_state="B").set_initial_state("A")


class TestBuild:
    def test_declaration_order_preserved(self) -> None:
        cfg = (
            _base()
            .add_transition("A", "B", "zeta")
            .add_transition("B", "C", "alpha")
            .build()
        )
        assert [t.event for t in cfg.transitions] == ["zeta", "alpha"]
        assert cfg.states() == ["A", "B", "C"]

    def test_no_initial_state(self) -> None:
        builder = ProjectTypeConfigBuilder("t").with_phase("work", start_state="A", end_state="B")
        builder.add_transition("A", "B", "go")
        with pytest.raises(ConfigurationError, match="no initial state"):
            builder.build()

    def test_no_phases(self) -> None:
        builder = ProjectTypeConfigBuilder("t").set_initial_state("A").add_transition("A", "B", "go")
        with pytest.raises(ConfigurationError, match="no phases"):
            builder.build()

    def test_phase_state_not_in_graph(self) -> None:
        builder = _base().add_transition("A", "C", "go")
        with pytest.raises(ConfigurationError, match="end state B"):
            builder.build()

    def test_duplicate_event_from_state(self) -> None:
        builder = _base().add_transition("A", "B", "go").add_transition("A", "C", "go")
        with pytest.raises(ConfigurationError, match="duplicate transition for event 'go'"):
            builder.build()

    def test_unknown_failed_phase(self) -> None:
        builder = _base().add_transition("A", "B", "go", failed_phase="ghost")
        with pytest.raises(ConfigurationError, match="ghost"):
            builder.build()

    def test_duplicate_phase(self) -> None:
        with pytest.raises(ConfigurationError, match="duplicate phase 'work'"):
            _base().with_phase("work", start_state="A", end_state="B")

    def test_determiner_without_transitions(self) -> None:
        builder = _base().add_transition("A", "B", "go").on_advance("Z", lambda p: "go")
        with pytest.raises(ConfigurationError, match="no transitions"):
            builder.build()

    def test_second_determiner_rejected(self) -> None:
        builder = _base().on_advance("A", lambda p: "go")
        with pytest.raises(ConfigurationError, match="already has an event determiner"):
            builder.on_advance("A", lambda p: "other")

    def test_branch_after_determiner_rejected(self) -> None:
        builder = _base().on_advance("A", lambda p: "go")
        with pytest.raises(ConfigurationError, match="cannot add a branch"):
            builder.add_branch("A", branch_on(lambda p: "x"), when("x", "go", "B"))

    def test_error_names_type(self) -> None:
        builder = ProjectTypeConfigBuilder("broken")
        with pytest.raises(ConfigurationError) as exc_info:
            builder.build()
        assert exc_info.value.type_name == "broken"
        assert "broken" in str(exc_info.value)


class TestIntrospection:
    def test_phase_queries(self) -> None:
        cfg = make_linear_config()
        assert cfg.phase_names() == ["work", "review"]
        assert cfg.phase("missing") is None
        assert cfg.phase_for_state("Review") == "review"
        assert cfg.phase_for_state("Done") == ""
        assert cfg.is_phase_start_state("work", "Draft")
        assert not cfg.is_phase_end_state("work", "Review")
        assert [p.name for p in cfg.phases_ending_at("Draft")] == ["work"]

    def test_task_phases(self) -> None:
        cfg = make_linear_config()
        assert cfg.task_supporting_phases() == ["work"]
        assert cfg.default_task_phase("Review") == "work"

    def test_available_transitions_sorted(self) -> None:
        cfg = (
            _base()
            .add_transition("A", "B", "zeta")
            .add_transition("A", "C", "alpha", description="to C")
            .build()
        )
        infos = cfg.available_transitions("A")
        assert [i.event for i in infos] == ["alpha", "zeta"]
        assert infos[0].to_dict()["to"] == "C"

    def test_find_and_get_transition(self) -> None:
        cfg = make_linear_config()
        t = cfg.find_transition("Draft", "submit")
        assert t is not None
        assert t.guard_description == "work marked ready"
        assert cfg.get_transition("Draft", "Done", "submit") is None
        assert cfg.transitions_into("Done")[0].event == "approve"

    def test_to_dict_has_no_callables(self) -> None:
        data = make_linear_config().to_dict()
        assert data["type"] == "linear"
        assert data["phases"][0]["metadata_fields"] == ["ready", "owner"]
        assert data["transitions"][0] == {
            "event": "submit",
            "from": "Draft",
            "to": "Review",
            "description": "Send for review",
            "guard_description": "work marked ready",
        }


class TestFieldSchema:
    def test_invalid_type(self) -> None:
        with pytest.raises(ValueError, match="Invalid field type"):
            FieldSchema("x", "colour")  # type: ignore[arg-type]

    def test_enum_requires_options(self) -> None:
        with pytest.raises(ValueError, match="must declare options"):
            FieldSchema("x", "enum")

    @pytest.mark.parametrize(
        ("ftype", "value", "ok"),
        [
            ("boolean", True, True),
            ("boolean", "true", False),
            ("number", 3, True),
            ("number", True, False),
            ("text", "x", True),
            ("list", ["a"], True),
            ("list", "a", False),
        ],
    )
    def test_check(self, ftype: str, value: object, ok: bool) -> None:
        schema = FieldSchema("f", ftype)  # type: ignore[arg-type]
        assert (schema.check(value) is None) is ok

    def test_enum_check(self) -> None:
        schema = FieldSchema("level", "enum", options=("low", "high"))
        assert schema.check("low") is None
        assert "must be one of" in (schema.check("mid") or "")

    def test_parse(self) -> None:
        assert FieldSchema("f", "boolean").parse("Yes") is True
        assert FieldSchema("f", "number").parse("2.5") == 2.5
        assert FieldSchema("f", "list").parse("a, b,") == ["a", "b"]
        with pytest.raises(ValueError, match="true/false"):
            FieldSchema("f", "boolean").parse("maybe")
