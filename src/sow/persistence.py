"""Project discovery, configuration, and load/save of the project record.

Convention-based discovery: each repository has a ``.sow/`` directory
containing ``config.json`` (project-level settings) and, while a project is
active, ``project/state.yaml`` (the project record).

Load pipeline: read YAML -> parse record -> look up the type configuration
-> bind a machine at the persisted ``current_state`` -> validate.
Save pipeline: sync state from the machine -> stamp timestamps -> validate
-> write atomically (temp file + ``os.replace``).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import yaml

from sow.actions import mark_phase_in_progress
from sow.errors import ValidationError
from sow.machine import BoundMachine, bind
from sow.models import Phase, Project, Statechart, now_iso
from sow.registry import TypeRegistry, default_registry
from sow.typeconfig import ProjectTypeConfig
from sow.types.config import ProjectConfig
from sow.validation import check_project

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

SOW_DIR_NAME = ".sow"
CONFIG_FILENAME = "config.json"
PROJECT_DIRNAME = "project"
STATE_FILENAME = "state.yaml"

_MAX_NAME_LENGTH = 50

# Branch prefix -> project type; anything else is "standard".
BRANCH_PREFIXES: tuple[tuple[str, str], ...] = (
    ("explore/", "exploration"),
    ("design/", "design"),
    ("breakdown/", "breakdown"),
)


def find_sow_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for a .sow/ directory.

    Returns the .sow/ directory path (not the repository root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / SOW_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {SOW_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def default_config() -> ProjectConfig:
    return ProjectConfig(version=1, default_type="standard", log_level="INFO")


def read_config(sow_dir: Path) -> ProjectConfig:
    """Read .sow/config.json. Returns defaults if missing or corrupt."""
    defaults = default_config()
    config_path = sow_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        raw = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(raw, dict):
        logger.warning("Config file %s contains non-dict JSON, using defaults", config_path)
        return defaults
    result: ProjectConfig = {**defaults, **raw}  # type: ignore[typeddict-item]
    return result


def write_config(sow_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .sow/config.json."""
    write_atomic(sow_dir / CONFIG_FILENAME, json.dumps(config, indent=2) + "\n")


def state_path(sow_dir: Path) -> Path:
    return sow_dir / PROJECT_DIRNAME / STATE_FILENAME


def project_exists(sow_dir: Path) -> bool:
    return state_path(sow_dir).is_file()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def atomic_writer(path: Path) -> Iterator[TextIO]:
    """Yield a handle to a temp file that replaces ``path`` on clean exit.

    On any exception the temp file is removed and ``path`` is left untouched.
    """
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as handle:
            yield handle
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


def write_atomic(path: Path, content: str) -> None:
    """Write content to path atomically via temp file + os.replace()."""
    with atomic_writer(path) as handle:
        handle.write(content)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _without_timestamps(resolvers: dict[Any, list[tuple[str, Any]]]) -> dict[Any, list[tuple[str, Any]]]:
    return {
        first: [(tag, regexp) for tag, regexp in entries if tag != _TIMESTAMP_TAG] for first, entries in resolvers.items()
    }


class _StateLoader(yaml.SafeLoader):
    """SafeLoader that reads ISO timestamps as the strings they were written as."""


class _StateDumper(yaml.SafeDumper):
    """SafeDumper that writes timestamp strings unquoted, matching ``_StateLoader``."""


_StateLoader.yaml_implicit_resolvers = _without_timestamps(yaml.SafeLoader.yaml_implicit_resolvers)
_StateDumper.yaml_implicit_resolvers = _without_timestamps(yaml.SafeDumper.yaml_implicit_resolvers)


def dump_project(project: Project) -> str:
    rendered = yaml.dump(
        project.to_dict(),
        Dumper=_StateDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )
    if not rendered.endswith("\n"):
        rendered = rendered + "\n"
    return rendered


def parse_project(text: str, source: str = STATE_FILENAME) -> Project:
    """Parse a project record from YAML text.

    Raises:
        ValidationError: If the YAML is invalid or the record is malformed.
    """
    try:
        loaded = yaml.load(text, Loader=_StateLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        raise ValidationError([f"{source}: invalid YAML ({exc})"]) from exc
    if not isinstance(loaded, dict):
        raise ValidationError([f"{source}: expected a top-level mapping, got {type(loaded).__name__}"])
    return Project.from_dict(loaded)


# ---------------------------------------------------------------------------
# Load / save / create
# ---------------------------------------------------------------------------


@dataclass
class LoadedProject:
    """A project record with its type configuration and bound machine."""

    project: Project
    config: ProjectTypeConfig
    machine: BoundMachine

    @property
    def state(self) -> str:
        return self.machine.state


def load(sow_dir: Path, registry: TypeRegistry | None = None) -> LoadedProject:
    """Load, bind and validate the active project.

    Raises:
        FileNotFoundError: No active project.
        ValidationError: Malformed record or mismatch with its configuration.
        UnknownProjectType: The record's type tag is not registered.
    """
    reg = registry if registry is not None else default_registry()
    path = state_path(sow_dir)
    if not path.is_file():
        msg = f"No active project in {sow_dir} (expected {path})"
        raise FileNotFoundError(msg)
    project = parse_project(path.read_text(encoding="utf-8"), str(path))
    config = reg.get(project.type)
    machine = bind(config, project, project.current_state)
    check_project(project, config)
    logger.debug("Loaded project %s (%s) at %s", project.name, project.type, machine.state)
    return LoadedProject(project=project, config=config, machine=machine)


def save(loaded: LoadedProject, sow_dir: Path) -> Path:
    """Sync the machine state into the record, validate, and write it atomically."""
    project = loaded.project
    now = now_iso()
    project.statechart.current_state = loaded.machine.state
    project.statechart.updated_at = now
    project.updated_at = now
    check_project(project, loaded.config)
    path = state_path(sow_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_atomic(path, dump_project(project))
    logger.debug("Saved project %s at %s", project.name, project.current_state)
    return path


def detect_project_type(branch: str) -> str:
    for prefix, type_name in BRANCH_PREFIXES:
        if branch.startswith(prefix):
            return type_name
    return "standard"


def generate_project_name(description: str) -> str:
    """Kebab-case a description: at most 50 source characters, [a-z0-9-] only."""
    truncated = description[:_MAX_NAME_LENGTH]
    name = re.sub(r"[ _]+", "-", truncated.lower())
    name = re.sub(r"[^a-z0-9-]", "", name)
    name = re.sub(r"-{2,}", "-", name)
    return name.strip("-")


def create(
    sow_dir: Path,
    branch: str,
    description: str,
    *,
    project_type: str | None = None,
    registry: TypeRegistry | None = None,
) -> LoadedProject:
    """Create, initialize and save a new project.

    The type is detected from the branch prefix unless ``project_type`` is
    given. Every declared phase gets a pending record; the phase starting
    at the initial state is marked in progress.

    Raises:
        ValueError: Empty branch or a description with no usable characters.
        FileExistsError: A project is already active.
        UnknownProjectType: The detected type is not registered.
    """
    if not branch:
        msg = "branch name required"
        raise ValueError(msg)
    if project_exists(sow_dir):
        msg = f"A project already exists at {state_path(sow_dir)}"
        raise FileExistsError(msg)
    reg = registry if registry is not None else default_registry()
    type_name = project_type or detect_project_type(branch)
    config = reg.get(type_name)
    name = generate_project_name(description)
    if not name:
        msg = f"Cannot derive a project name from description {description!r}"
        raise ValueError(msg)

    now = now_iso()
    project = Project(
        name=name,
        type=config.name,
        statechart=Statechart(current_state=config.initial_state, updated_at=now),
        branch=branch,
        description=description,
        created_at=now,
        updated_at=now,
    )
    for pc in config.phases:
        project.phases[pc.name] = Phase(created_at=now)
    if config.initializer is not None:
        config.initializer(project)
    for pc in config.phases_starting_at(config.initial_state):
        mark_phase_in_progress(project, pc.name)

    loaded = LoadedProject(project=project, config=config, machine=bind(config, project, config.initial_state))
    save(loaded, sow_dir)
    logger.info("Created project %s (%s) on %s", name, config.name, branch, extra={"project": name})
    return loaded
