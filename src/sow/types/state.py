"""TypedDicts for the on-disk project record (state.yaml)."""

# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.

from __future__ import annotations

from typing import Any, NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class _ArtifactRequired(TypedDict):
    type: str
    path: str


class ArtifactDict(_ArtifactRequired, total=False):
    """A single input or output artifact.

    Optional keys are omitted while they hold their default, unless the
    record they were loaded from carried them.
    """

    approved: bool
    created_at: ISOTimestamp
    metadata: dict[str, Any]


class _TaskRequired(TypedDict):
    id: str
    name: str


class TaskDict(_TaskRequired, total=False):
    status: str
    phase: str
    iteration: int
    assigned_agent: str
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    started_at: ISOTimestamp
    completed_at: ISOTimestamp
    metadata: dict[str, Any]
    inputs: list[ArtifactDict]
    outputs: list[ArtifactDict]


class PhaseDict(TypedDict, total=False):
    status: str
    enabled: bool
    created_at: ISOTimestamp
    started_at: ISOTimestamp
    completed_at: ISOTimestamp
    failed_at: ISOTimestamp
    iteration: int
    inputs: list[ArtifactDict]
    outputs: list[ArtifactDict]
    tasks: list[TaskDict]
    metadata: dict[str, Any]


class StatechartDict(TypedDict):
    current_state: str
    updated_at: ISOTimestamp


class _ProjectRequired(TypedDict):
    name: str
    type: str
    phases: dict[str, PhaseDict]
    statechart: StatechartDict


class ProjectDict(_ProjectRequired, total=False):
    """Top-level shape of .sow/project/state.yaml."""

    branch: str
    description: str
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
