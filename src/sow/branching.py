"""Branching -- discriminated branches and auto-mode event resolution.

Two disciplines exist for states with more than one way out:

* Discriminated branching: a pure ``discriminator(project) -> value`` picks
  one of several pre-registered paths. ``add_branch`` expands the paths into
  ordinary guarded transitions plus a generated determiner, so automatic
  advancement always knows which event to fire.
* Intent branching: several transitions share a from-state with no
  discriminator and no determiner. The caller must choose the event.

``resolve_auto_transition`` implements the tie-break used by ``sow advance``
with no arguments: a determiner always wins, a lone transition is used
as-is, anything else is ambiguous or terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sow.errors import (
    AmbiguousIntent,
    ConfigurationError,
    EventNotConfigured,
    GuardEvaluationError,
    NoMatchingBranch,
    TerminalState,
    TransitionError,
)
from sow.models import Project
from sow.typeconfig import (
    Action,
    BranchConfig,
    BranchPath,
    Determiner,
    Discriminator,
    GuardTemplate,
    ProjectTypeConfig,
    TransitionConfig,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchOn:
    discriminator: Discriminator | None


def branch_on(discriminator: Discriminator) -> BranchOn:
    """Declare the discriminator for ``add_branch``."""
    return BranchOn(discriminator)


def when(
    value: str,
    event: str,
    to_state: str,
    *,
    guard: GuardTemplate | None = None,
    description: str = "",
    on_entry: Action | None = None,
    on_exit: Action | None = None,
    failed_phase: str = "",
) -> BranchPath:
    """Declare one branch path: discriminator ``value`` fires ``event`` into ``to_state``."""
    return BranchPath(
        value=value,
        event=event,
        to_state=to_state,
        guard=guard,
        description=description,
        on_entry=on_entry,
        on_exit=on_exit,
        failed_phase=failed_phase,
    )


def expand_branch(
    type_name: str, from_state: str, on: BranchOn, paths: Sequence[BranchPath]
) -> tuple[BranchConfig, list[TransitionConfig]]:
    """Validate a branch declaration and expand it into transitions sorted by value.

    Raises:
        ConfigurationError: If the discriminator is missing, no paths are
            given, or a path value is empty or repeated.
    """
    if on.discriminator is None:
        raise ConfigurationError(type_name, f"branch from {from_state} has no discriminator")
    if not paths:
        raise ConfigurationError(type_name, f"branch from {from_state} declares no paths")
    seen: set[str] = set()
    for p in paths:
        if not p.value:
            raise ConfigurationError(type_name, f"branch from {from_state} has a path with an empty value")
        if p.value in seen:
            raise ConfigurationError(type_name, f"branch from {from_state} repeats value '{p.value}'")
        seen.add(p.value)

    ordered = tuple(sorted(paths, key=lambda p: p.value))
    branch = BranchConfig(from_state=from_state, discriminator=on.discriminator, paths=ordered)
    transitions = [
        TransitionConfig(
            from_state=from_state,
            to_state=p.to_state,
            event=p.event,
            guard=p.guard,
            on_entry=p.on_entry,
            on_exit=p.on_exit,
            description=p.description,
            failed_phase=p.failed_phase,
        )
        for p in ordered
    ]
    logger.debug("Expanded branch from %s into %d transitions", from_state, len(transitions))
    return branch, transitions


def make_determiner(branch: BranchConfig) -> Determiner:
    """Build the event determiner generated for a discriminated branch."""
    events = {p.value: p.event for p in branch.paths}

    def determine(project: Project) -> str:
        value = branch.discriminator(project)
        event = events.get(value)
        if event is None:
            raise NoMatchingBranch(branch.from_state, value, branch.values())
        return event

    return determine


def is_intent_branch(config: ProjectTypeConfig, state: str) -> bool:
    """True when ``state`` has several exits and nothing to pick between them."""
    return config.determiner_for(state) is None and len(config.transitions_from(state)) >= 2


def resolve_auto_transition(config: ProjectTypeConfig, project: Project, state: str) -> TransitionConfig:
    """Pick the transition auto mode should fire from ``state``.

    Raises:
        NoMatchingBranch: The discriminator returned an unmapped value.
        EventNotConfigured: A determiner returned an event with no transition.
        GuardEvaluationError: The determiner raised instead of naming an event.
        AmbiguousIntent: Two or more transitions and no determiner.
        TerminalState: No transitions leave ``state``.
    """
    determiner = config.determiner_for(state)
    if determiner is not None:
        try:
            event = determiner(project)
        except TransitionError:
            raise
        except Exception as exc:
            raise GuardEvaluationError(state, "event determiner", exc) from exc
        transition = config.find_transition(state, event)
        if transition is None:
            raise EventNotConfigured(state, event, [t.event for t in config.available_transitions(state)])
        return transition

    candidates = config.transitions_from(state)
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise TerminalState(state)
    raise AmbiguousIntent(state, [t.event for t in config.available_transitions(state)])
