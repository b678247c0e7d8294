"""Tests for the write-once project type registry."""

from __future__ import annotations

import pytest

from sow.errors import ConfigurationError, UnknownProjectType
from sow.registry import TypeRegistry, default_registry, register_builtin_types
from tests._factory import make_linear_config


class TestTypeRegistry:
    def test_register_and_get(self) -> None:
        reg = TypeRegistry()
        cfg = make_linear_config()
        reg.register(cfg)
        assert reg.get("linear") is cfg
        assert "linear" in reg
        assert reg.names() == ["linear"]

    def test_duplicate_rejected(self) -> None:
        reg = TypeRegistry()
        reg.register(make_linear_config())
        with pytest.raises(ConfigurationError, match="already registered"):
            reg.register(make_linear_config())

    def test_frozen_rejects_registration(self) -> None:
        reg = TypeRegistry()
        reg.freeze()
        with pytest.raises(RuntimeError, match="frozen"):
            reg.register(make_linear_config())

    def test_unknown_lists_available(self) -> None:
        reg = TypeRegistry()
        reg.register(make_linear_config())
        with pytest.raises(UnknownProjectType) as exc_info:
            reg.get("mystery")
        assert exc_info.value.available == ("linear",)
        assert "registered types: linear" in str(exc_info.value)


class TestBuiltinTypes:
    def test_registers_and_freezes(self, registry: TypeRegistry) -> None:
        assert registry.names() == ["design", "exploration", "standard"]
        assert registry.frozen

    def test_idempotent(self) -> None:
        reg = TypeRegistry()
        first = register_builtin_types(reg)
        second = register_builtin_types(reg)
        assert first is second
        assert reg.names() == ["design", "exploration", "standard"]

    def test_default_registry(self) -> None:
        reg = register_builtin_types()
        assert reg is default_registry()
        assert "standard" in reg

    def test_list_types_sorted(self, registry: TypeRegistry) -> None:
        assert [c.name for c in registry.list_types()] == ["design", "exploration", "standard"]

    @pytest.mark.parametrize(
        ("type_name", "edges"),
        [
            (
                "standard",
                {
                    ("ImplementationPlanning", "planning_complete", "ImplementationDraftPRCreation"),
                    ("ImplementationDraftPRCreation", "draft_pr_created", "ImplementationExecuting"),
                    ("ImplementationExecuting", "all_tasks_complete", "ReviewActive"),
                    ("ReviewActive", "review_pass", "FinalizeChecks"),
                    ("ReviewActive", "review_fail", "ImplementationPlanning"),
                    ("FinalizeChecks", "checks_done", "FinalizePRReady"),
                    ("FinalizePRReady", "pr_ready", "FinalizePRChecks"),
                    ("FinalizePRChecks", "pr_checks_pass", "FinalizeCleanup"),
                    ("FinalizeCleanup", "cleanup_complete", "NoProject"),
                },
            ),
            (
                "exploration",
                {
                    ("Planning", "begin_research", "Researching"),
                    ("Researching", "finalize", "Finalizing"),
                    ("Researching", "add_more_research", "Planning"),
                    ("Finalizing", "complete_finalization", "Completed"),
                },
            ),
            (
                "design",
                {
                    ("Active", "complete_design", "Finalizing"),
                    ("Finalizing", "complete_finalization", "Completed"),
                },
            ),
        ],
    )
    def test_event_names(self, registry: TypeRegistry, type_name: str, edges: set[tuple[str, str, str]]) -> None:
        cfg = registry.get(type_name)
        assert {(t.from_state, t.event, t.to_state) for t in cfg.transitions} == edges
