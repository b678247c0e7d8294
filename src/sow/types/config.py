"""TypedDicts for .sow/config.json and type introspection output."""

# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.

from __future__ import annotations

from typing import TypedDict


class ProjectConfig(TypedDict, total=False):
    """Shape of .sow/config.json."""

    version: int
    default_type: str
    log_level: str


# TransitionInfoDict uses "from" as a key at runtime (a Python keyword).
# TypedDict cannot express this with class syntax; we use functional form.
TransitionInfoDict = TypedDict(
    "TransitionInfoDict",
    {"event": str, "from": str, "to": str, "description": str, "guard_description": str},
)


class PhaseInfoDict(TypedDict):
    name: str
    start_state: str
    end_state: str
    inputs: list[str]
    outputs: list[str]
    supports_tasks: bool
    metadata_fields: list[str]


class TypeInfoDict(TypedDict):
    """Full type configuration details returned by ``ProjectTypeConfig.to_dict()``."""

    type: str
    description: str
    initial_state: str
    states: list[str]
    phases: list[PhaseInfoDict]
    transitions: list[TransitionInfoDict]
    branching_states: list[str]
