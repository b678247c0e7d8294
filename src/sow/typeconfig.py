"""Project type configuration -- phases, transition graph, and introspection.

A ProjectTypeConfig is the immutable, declarative description of one project
type: which phases it has, the guarded transition graph between its states,
per-state event determiners, and per-state guidance generators. It holds no
reference to any concrete project; guards and actions are templates that
take the Project explicitly and are bound to a record by ``sow.machine.bind``.

Configs are produced by ``sow.builder.ProjectTypeConfigBuilder`` and never
constructed directly by project types.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from sow.types.config import PhaseInfoDict, TransitionInfoDict, TypeInfoDict

if TYPE_CHECKING:
    from sow.models import Project

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

GuardFunc = Callable[["Project"], bool]
Action = Callable[["Project"], None]
Determiner = Callable[["Project"], str]
Discriminator = Callable[["Project"], str]
PromptGenerator = Callable[["Project"], str]
Initializer = Callable[["Project"], None]

FieldType = Literal["text", "enum", "number", "date", "list", "boolean"]

_VALID_FIELD_TYPES: frozenset[str] = frozenset({"text", "enum", "number", "date", "list", "boolean"})

# ---------------------------------------------------------------------------
# Frozen dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldSchema:
    """Schema for one metadata field on a phase."""

    name: str
    type: FieldType
    description: str = ""
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.type not in _VALID_FIELD_TYPES:
            allowed = sorted(_VALID_FIELD_TYPES)
            msg = f"Invalid field type '{self.type}' for field '{self.name}': must be one of {allowed}"
            raise ValueError(msg)
        if self.type == "enum" and not self.options:
            msg = f"Enum field '{self.name}' must declare options"
            raise ValueError(msg)

    def check(self, value: Any) -> str | None:
        """Return an error message if ``value`` does not fit this field, else None."""
        if self.type == "boolean" and not isinstance(value, bool):
            return f"field '{self.name}' must be a boolean, got {type(value).__name__}"
        if self.type == "number" and (isinstance(value, bool) or not isinstance(value, int | float)):
            return f"field '{self.name}' must be a number, got {type(value).__name__}"
        if self.type in ("text", "date") and not isinstance(value, str):
            return f"field '{self.name}' must be a string, got {type(value).__name__}"
        if self.type == "list" and not isinstance(value, list):
            return f"field '{self.name}' must be a list, got {type(value).__name__}"
        if self.type == "enum" and value not in self.options:
            return f"field '{self.name}' must be one of {list(self.options)}, got {value!r}"
        return None

    def parse(self, raw: str) -> Any:
        """Convert a command-line string into a value of this field's type."""
        if self.type == "boolean":
            lowered = raw.strip().lower()
            if lowered in ("true", "yes", "1"):
                return True
            if lowered in ("false", "no", "0"):
                return False
            msg = f"field '{self.name}' expects true/false, got {raw!r}"
            raise ValueError(msg)
        if self.type == "number":
            try:
                return int(raw)
            except ValueError:
                return float(raw)
        if self.type == "list":
            return [item.strip() for item in raw.split(",") if item.strip()]
        return raw


@dataclass(frozen=True)
class GuardTemplate:
    """A guard predicate plus the description shown when it blocks."""

    description: str
    func: GuardFunc


@dataclass(frozen=True)
class PhaseConfig:
    name: str
    start_state: str
    end_state: str
    allowed_inputs: tuple[str, ...] = ()
    allowed_outputs: tuple[str, ...] = ()
    supports_tasks: bool = False
    metadata_schema: tuple[FieldSchema, ...] = ()

    def field_schema(self, name: str) -> FieldSchema | None:
        for f in self.metadata_schema:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class TransitionConfig:
    """One edge of the transition graph. ``failed_phase`` marks that phase failed on exit."""

    from_state: str
    to_state: str
    event: str
    guard: GuardTemplate | None = None
    on_entry: Action | None = None
    on_exit: Action | None = None
    description: str = ""
    failed_phase: str = ""

    @property
    def guard_description(self) -> str:
        return self.guard.description if self.guard else ""


@dataclass(frozen=True)
class BranchPath:
    """One value-to-event mapping of a discriminated branch."""

    value: str
    event: str
    to_state: str
    guard: GuardTemplate | None = None
    description: str = ""
    on_entry: Action | None = None
    on_exit: Action | None = None
    failed_phase: str = ""


@dataclass(frozen=True)
class BranchConfig:
    from_state: str
    discriminator: Discriminator
    paths: tuple[BranchPath, ...]

    def values(self) -> list[str]:
        return sorted(p.value for p in self.paths)


@dataclass(frozen=True)
class TransitionInfo:
    """Introspection view of a transition, free of callables."""

    event: str
    from_state: str
    to_state: str
    description: str
    guard_description: str

    def to_dict(self) -> TransitionInfoDict:
        return {
            "event": self.event,
            "from": self.from_state,
            "to": self.to_state,
            "description": self.description,
            "guard_description": self.guard_description,
        }


# ---------------------------------------------------------------------------
# ProjectTypeConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectTypeConfig:
    """Complete, immutable definition of a project type."""

    name: str
    initial_state: str
    phases: tuple[PhaseConfig, ...]
    transitions: tuple[TransitionConfig, ...]
    description: str = ""
    on_advance: Mapping[str, Determiner] = field(default_factory=dict)
    branches: Mapping[str, BranchConfig] = field(default_factory=dict)
    prompts: Mapping[str, PromptGenerator] = field(default_factory=dict)
    orchestrator_prompt: PromptGenerator | None = None
    initializer: Initializer | None = None

    # -- Phases -------------------------------------------------------------

    def phase(self, name: str) -> PhaseConfig | None:
        for p in self.phases:
            if p.name == name:
                return p
        return None

    def phase_names(self) -> list[str]:
        return [p.name for p in self.phases]

    def phase_for_state(self, state: str) -> str:
        """Name of the phase whose start or end state is ``state``, or ''."""
        for p in self.phases:
            if state in (p.start_state, p.end_state):
                return p.name
        return ""

    def is_phase_start_state(self, phase_name: str, state: str) -> bool:
        p = self.phase(phase_name)
        return p is not None and p.start_state == state

    def is_phase_end_state(self, phase_name: str, state: str) -> bool:
        p = self.phase(phase_name)
        return p is not None and p.end_state == state

    def phases_starting_at(self, state: str) -> list[PhaseConfig]:
        return [p for p in self.phases if p.start_state == state]

    def phases_ending_at(self, state: str) -> list[PhaseConfig]:
        return [p for p in self.phases if p.end_state == state]

    def task_supporting_phases(self) -> list[str]:
        return sorted(p.name for p in self.phases if p.supports_tasks)

    def default_task_phase(self, state: str) -> str:
        """Phase for task commands: the current state's phase if it takes tasks, else the first one that does."""
        for p in self.phases:
            if state in (p.start_state, p.end_state) and p.supports_tasks:
                return p.name
        supporting = self.task_supporting_phases()
        return supporting[0] if supporting else ""

    # -- Graph --------------------------------------------------------------

    def states(self) -> list[str]:
        """All states in first-appearance order, starting with the initial state."""
        seen: dict[str, None] = {self.initial_state: None}
        for t in self.transitions:
            seen.setdefault(t.from_state, None)
            seen.setdefault(t.to_state, None)
        return list(seen)

    def transitions_from(self, state: str) -> list[TransitionConfig]:
        """Transitions leaving ``state``, in declaration order."""
        return [t for t in self.transitions if t.from_state == state]

    def transitions_into(self, state: str) -> list[TransitionConfig]:
        return [t for t in self.transitions if t.to_state == state]

    def find_transition(self, from_state: str, event: str) -> TransitionConfig | None:
        for t in self.transitions:
            if t.from_state == from_state and t.event == event:
                return t
        return None

    def get_transition(self, from_state: str, to_state: str, event: str) -> TransitionConfig | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state and t.event == event:
                return t
        return None

    def available_transitions(self, state: str) -> list[TransitionInfo]:
        """Introspection view of transitions from ``state``, sorted by event name."""
        infos = [
            TransitionInfo(
                event=t.event,
                from_state=t.from_state,
                to_state=t.to_state,
                description=t.description,
                guard_description=t.guard_description,
            )
            for t in self.transitions_from(state)
        ]
        return sorted(infos, key=lambda i: i.event)

    def determiner_for(self, state: str) -> Determiner | None:
        return self.on_advance.get(state)

    def is_branching_state(self, state: str) -> bool:
        return state in self.branches

    def branches_for(self, state: str) -> BranchConfig | None:
        return self.branches.get(state)

    def branching_states(self) -> list[str]:
        return sorted(self.branches)

    # -- Guidance -----------------------------------------------------------

    def prompt(self, state: str, project: Project) -> str:
        gen = self.prompts.get(state)
        if gen is None:
            return ""
        return gen(project)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> TypeInfoDict:
        phases: list[PhaseInfoDict] = [
            {
                "name": p.name,
                "start_state": p.start_state,
                "end_state": p.end_state,
                "inputs": list(p.allowed_inputs),
                "outputs": list(p.allowed_outputs),
                "supports_tasks": p.supports_tasks,
                "metadata_fields": [f.name for f in p.metadata_schema],
            }
            for p in self.phases
        ]
        return {
            "type": self.name,
            "description": self.description,
            "initial_state": self.initial_state,
            "states": self.states(),
            "phases": phases,
            "transitions": [
                TransitionInfo(t.event, t.from_state, t.to_state, t.description, t.guard_description).to_dict()
                for t in self.transitions
            ],
            "branching_states": self.branching_states(),
        }
