"""Tests for the design project type."""

from __future__ import annotations

import pytest

from sow.advance import advance_auto
from sow.errors import GuardNotSatisfied
from sow.models import Artifact
from sow.projects.design import ACTIVE, COMPLETED, FINALIZING, new_design_config
from sow.validation import validate_project
from tests._factory import make_machine


class TestDesign:
    def test_initial_state(self) -> None:
        cfg = new_design_config()
        assert cfg.initial_state == ACTIVE
        assert cfg.task_supporting_phases() == ["design"]

    def test_requires_outputs(self) -> None:
        machine = make_machine(new_design_config())
        assert "Draft design documents" in machine.prompt()
        with pytest.raises(GuardNotSatisfied, match="all design documents approved"):
            advance_auto(machine)

    def test_unapproved_output_blocks(self) -> None:
        machine = make_machine(new_design_config())
        outputs = machine.project.phases["design"].outputs
        outputs.add(Artifact(type="design", path="design.md", approved=True))
        outputs.add(Artifact(type="adr", path="adr-001.md"))
        assert "adr-001.md" in machine.prompt()
        assert not machine.can_fire("complete_design")

    def test_lifecycle(self) -> None:
        cfg = new_design_config()
        machine = make_machine(cfg)
        project = machine.project
        project.phases["design"].outputs.add(Artifact(type="architecture", path="arch.md", approved=True))
        advance_auto(machine)
        assert machine.state == FINALIZING
        assert project.phases["finalization"].enabled
        project.phases["finalization"].metadata.update({"pr_created": True, "pr_url": "https://example.test/pr/1"})
        advance_auto(machine)
        assert machine.state == COMPLETED
        assert validate_project(project, cfg) == []

    def test_disallowed_artifact_type(self) -> None:
        cfg = new_design_config()
        machine = make_machine(cfg)
        machine.project.phases["design"].outputs.add(Artifact(type="video", path="demo.mp4"))
        assert any("'video' not allowed" in e for e in validate_project(machine.project, cfg))
