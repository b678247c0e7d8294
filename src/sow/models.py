"""Project record model: Project, Phase, Artifact, Task and their containers.

These are plain mutable dataclasses (domain entities). They carry no
workflow behavior: status changes happen through the bound machine's
phase hooks or through explicit mutation commands. Phases never hold a
back-reference to their Project; anything needing both receives the
Project explicitly.

``to_dict``/``from_dict`` convert to and from the on-disk shape. An optional
field is written when it differs from its default, or when the record it was
loaded from carried the key, so a load followed by a save leaves phase and
artifact content unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, cast

from sow.errors import ValidationError
from sow.types.state import ArtifactDict, ISOTimestamp, PhaseDict, ProjectDict, StatechartDict, TaskDict

logger = logging.getLogger(__name__)

PhaseStatus = Literal["pending", "in_progress", "completed", "failed"]
TaskStatus = Literal["pending", "in_progress", "completed", "abandoned"]

PHASE_STATUSES: frozenset[str] = frozenset({"pending", "in_progress", "completed", "failed"})
TASK_STATUSES: frozenset[str] = frozenset({"pending", "in_progress", "completed", "abandoned"})


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _timestamp(value: Any) -> str | None:
    """Normalize a timestamp value; strings are kept exactly as written."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _mapping(raw: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        msg = f"{where} must be a mapping, got {type(raw).__name__}"
        raise ValidationError([msg])
    return raw


def _sequence(raw: Any, where: str) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"{where} must be a list, got {type(raw).__name__}"
        raise ValidationError([msg])
    return raw


def _flag(data: Mapping[str, Any], key: str, default: bool, where: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        msg = f"{where}.{key} must be a boolean, got {type(value).__name__} {value!r}"
        raise ValidationError([msg])
    return value


def _shape(
    values: dict[str, Any],
    defaults: Mapping[str, Any],
    source_keys: frozenset[str] | None,
    always: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """Drop optional keys that still hold their default.

    Keys without a default are required and always kept. For a loaded record
    ``source_keys`` lists the keys it was read with; those are kept too. A
    record built in memory keeps ``always`` instead.
    """
    keep = source_keys if source_keys is not None else always
    return {k: v for k, v in values.items() if k not in defaults or k in keep or v != defaults[k]}


def _source_keys(data: Mapping[str, Any]) -> frozenset[str]:
    return frozenset(str(k) for k in data)


# ---------------------------------------------------------------------------
# Artifact
# ---------------------------------------------------------------------------

_ARTIFACT_DEFAULTS: dict[str, Any] = {"approved": False, "created_at": None, "metadata": {}}


@dataclass
class Artifact:
    type: str
    path: str
    approved: bool = False
    created_at: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    source_keys: frozenset[str] | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> ArtifactDict:
        values: dict[str, Any] = {
            "type": self.type,
            "path": self.path,
            "approved": self.approved,
            "created_at": self.created_at,
            "metadata": dict(self.metadata),
        }
        return cast(ArtifactDict, _shape(values, _ARTIFACT_DEFAULTS, self.source_keys, frozenset({"approved"})))

    @classmethod
    def from_dict(cls, raw: Any, where: str = "artifact") -> Artifact:
        data = _mapping(raw, where)
        missing = [k for k in ("type", "path") if k not in data]
        if missing:
            raise ValidationError([f"{where} is missing required field(s): {', '.join(missing)}"])
        return cls(
            type=str(data["type"]),
            path=str(data["path"]),
            approved=_flag(data, "approved", False, where),
            created_at=_timestamp(data.get("created_at")),
            metadata=dict(_mapping(data.get("metadata") or {}, f"{where}.metadata")),
            source_keys=_source_keys(data),
        )


class ArtifactCollection(list[Artifact]):
    """Ordered artifact list with index-checked access."""

    def add(self, artifact: Artifact) -> int:
        """Append an artifact and return its index."""
        self.append(artifact)
        return len(self) - 1

    def get(self, index: int) -> Artifact:
        if index < 0 or index >= len(self):
            msg = f"index out of range: {index}"
            raise IndexError(msg)
        return self[index]

    def remove_at(self, index: int) -> Artifact:
        artifact = self.get(index)
        del self[index]
        return artifact

    def of_type(self, artifact_type: str) -> list[Artifact]:
        return [a for a in self if a.type == artifact_type]


def _artifacts(raw: Any, where: str) -> ArtifactCollection:
    return ArtifactCollection(Artifact.from_dict(a, f"{where}[{i}]") for i, a in enumerate(_sequence(raw, where)))


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

_TASK_DEFAULTS: dict[str, Any] = {
    "status": "pending",
    "phase": "",
    "iteration": 1,
    "assigned_agent": "",
    "created_at": None,
    "updated_at": None,
    "started_at": None,
    "completed_at": None,
    "metadata": {},
    "inputs": [],
    "outputs": [],
}


@dataclass
class Task:
    id: str
    name: str
    status: str = "pending"
    phase: str = ""
    iteration: int = 1
    assigned_agent: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    inputs: ArtifactCollection = field(default_factory=ArtifactCollection)
    outputs: ArtifactCollection = field(default_factory=ArtifactCollection)
    source_keys: frozenset[str] | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> TaskDict:
        values: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "phase": self.phase,
            "iteration": self.iteration,
            "assigned_agent": self.assigned_agent,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "metadata": dict(self.metadata),
            "inputs": [a.to_dict() for a in self.inputs],
            "outputs": [a.to_dict() for a in self.outputs],
        }
        return cast(TaskDict, _shape(values, _TASK_DEFAULTS, self.source_keys, frozenset({"status", "iteration"})))

    @classmethod
    def from_dict(cls, raw: Any, where: str = "task") -> Task:
        data = _mapping(raw, where)
        missing = [k for k in ("id", "name") if k not in data]
        if missing:
            raise ValidationError([f"{where} is missing required field(s): {', '.join(missing)}"])
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            status=str(data.get("status", "pending")),
            phase=str(data.get("phase", "")),
            iteration=int(data.get("iteration", 1)),
            assigned_agent=str(data.get("assigned_agent", "")),
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
            started_at=_timestamp(data.get("started_at")),
            completed_at=_timestamp(data.get("completed_at")),
            metadata=dict(_mapping(data.get("metadata") or {}, f"{where}.metadata")),
            inputs=_artifacts(data.get("inputs"), f"{where}.inputs"),
            outputs=_artifacts(data.get("outputs"), f"{where}.outputs"),
            source_keys=_source_keys(data),
        )


class TaskCollection(list[Task]):
    """Ordered task list addressed by task id."""

    def add(self, task: Task) -> None:
        if any(t.id == task.id for t in self):
            msg = f"task already exists: {task.id}"
            raise ValueError(msg)
        self.append(task)

    def get(self, task_id: str) -> Task:
        for task in self:
            if task.id == task_id:
                return task
        msg = f"task not found: {task_id}"
        raise KeyError(msg)

    def remove_id(self, task_id: str) -> Task:
        task = self.get(task_id)
        self.remove(task)
        return task


# ---------------------------------------------------------------------------
# Phase
# ---------------------------------------------------------------------------

_PHASE_DEFAULTS: dict[str, Any] = {
    "status": "pending",
    "enabled": True,
    "created_at": None,
    "started_at": None,
    "completed_at": None,
    "failed_at": None,
    "iteration": 0,
    "inputs": [],
    "outputs": [],
    "tasks": [],
    "metadata": {},
}


@dataclass
class Phase:
    status: str = "pending"
    enabled: bool = True
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    failed_at: str | None = None
    iteration: int = 0
    inputs: ArtifactCollection = field(default_factory=ArtifactCollection)
    outputs: ArtifactCollection = field(default_factory=ArtifactCollection)
    tasks: TaskCollection = field(default_factory=TaskCollection)
    metadata: dict[str, Any] = field(default_factory=dict)
    source_keys: frozenset[str] | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> PhaseDict:
        values: dict[str, Any] = {
            "status": self.status,
            "enabled": self.enabled,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "failed_at": self.failed_at,
            "iteration": self.iteration,
            "inputs": [a.to_dict() for a in self.inputs],
            "outputs": [a.to_dict() for a in self.outputs],
            "tasks": [t.to_dict() for t in self.tasks],
            "metadata": dict(self.metadata),
        }
        always = frozenset({"status", "enabled", "inputs", "outputs"})
        return cast(PhaseDict, _shape(values, _PHASE_DEFAULTS, self.source_keys, always))

    @classmethod
    def from_dict(cls, raw: Any, where: str = "phase") -> Phase:
        data = _mapping(raw, where)
        return cls(
            status=str(data.get("status", "pending")),
            enabled=_flag(data, "enabled", True, where),
            created_at=_timestamp(data.get("created_at")),
            started_at=_timestamp(data.get("started_at")),
            completed_at=_timestamp(data.get("completed_at")),
            failed_at=_timestamp(data.get("failed_at")),
            iteration=int(data.get("iteration", 0)),
            inputs=_artifacts(data.get("inputs"), f"{where}.inputs"),
            outputs=_artifacts(data.get("outputs"), f"{where}.outputs"),
            tasks=TaskCollection(
                Task.from_dict(t, f"{where}.tasks[{i}]") for i, t in enumerate(_sequence(data.get("tasks"), f"{where}.tasks"))
            ),
            metadata=dict(_mapping(data.get("metadata") or {}, f"{where}.metadata")),
            source_keys=_source_keys(data),
        )


class PhaseCollection(dict[str, Phase]):
    """Phases keyed by name. Missing keys raise ``KeyError('phase not found: ...')``."""

    def __missing__(self, key: str) -> Phase:
        msg = f"phase not found: {key}"
        raise KeyError(msg)

    def names(self) -> list[str]:
        return sorted(self)


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


@dataclass
class Statechart:
    current_state: str
    updated_at: str | None = None

    def to_dict(self) -> StatechartDict:
        return StatechartDict(current_state=self.current_state, updated_at=ISOTimestamp(self.updated_at or ""))


@dataclass
class Project:
    name: str
    type: str
    statechart: Statechart
    phases: PhaseCollection = field(default_factory=PhaseCollection)
    branch: str = ""
    description: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def current_state(self) -> str:
        return self.statechart.current_state

    def to_dict(self) -> ProjectDict:
        result = ProjectDict(
            name=self.name,
            type=self.type,
            phases={name: self.phases[name].to_dict() for name in self.phases.names()},
            statechart=self.statechart.to_dict(),
        )
        if self.branch:
            result["branch"] = self.branch
        if self.description:
            result["description"] = self.description
        if self.created_at:
            result["created_at"] = ISOTimestamp(self.created_at)
        if self.updated_at:
            result["updated_at"] = ISOTimestamp(self.updated_at)
        return result

    @classmethod
    def from_dict(cls, raw: Any) -> Project:
        """Build a Project from its on-disk shape.

        Raises:
            ValidationError: If required top-level fields are missing or malformed.
        """
        data = _mapping(raw, "project state")
        errors = [f"missing required field '{k}'" for k in ("name", "type", "statechart") if k not in data]
        if errors:
            raise ValidationError(errors, project=str(data.get("name", "")))
        chart = _mapping(data["statechart"], "statechart")
        if not chart.get("current_state"):
            raise ValidationError(["statechart.current_state must be a non-empty string"], project=str(data["name"]))
        phases = PhaseCollection()
        for name, phase_raw in _mapping(data.get("phases") or {}, "phases").items():
            phases[str(name)] = Phase.from_dict(phase_raw, f"phases.{name}")
        logger.debug("Parsed project %s with %d phases", data["name"], len(phases))
        return cls(
            name=str(data["name"]),
            type=str(data["type"]),
            statechart=Statechart(
                current_state=str(chart["current_state"]),
                updated_at=_timestamp(chart.get("updated_at")),
            ),
            phases=phases,
            branch=str(data.get("branch", "")),
            description=str(data.get("description", "")),
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
        )
