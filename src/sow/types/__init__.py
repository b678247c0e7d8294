"""Typed shapes for persisted project state and CLI JSON output."""

from __future__ import annotations

from sow.types.config import ProjectConfig, TransitionInfoDict, TypeInfoDict
from sow.types.state import (
    ArtifactDict,
    ISOTimestamp,
    PhaseDict,
    ProjectDict,
    StatechartDict,
    TaskDict,
)

__all__ = [
    "ArtifactDict",
    "ISOTimestamp",
    "PhaseDict",
    "ProjectConfig",
    "ProjectDict",
    "StatechartDict",
    "TaskDict",
    "TransitionInfoDict",
    "TypeInfoDict",
]
