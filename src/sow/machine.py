"""Bound machine -- a type configuration bound to one concrete project.

``bind`` turns each guard and entry/exit template into a zero-argument
callable with the project already supplied (captured by reference, so later
mutations are visible to later evaluations). The machine is rebuilt on every
load and never persisted; only ``current_state`` survives a save.

Firing order for an allowed transition from S to T:

1. user exit hooks of every transition declared from S
2. synthesized exit hooks: phases ending at S become completed (or failed
   when the transition's ``failed_phase`` names them)
3. state pointer moves to T
4. user entry hooks of every transition declared into T
5. synthesized entry hooks: phases starting at T become in_progress

If any hook raises, the project is restored from a snapshot taken before
step 1 and the state pointer is reset, so a half-applied transition is never
observable. The failure surfaces as TransitionHookError.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from sow.actions import mark_phase_completed, mark_phase_failed, mark_phase_in_progress
from sow.errors import (
    EventNotConfigured,
    GuardEvaluationError,
    GuardNotSatisfied,
    TransitionHookError,
    ValidationError,
)
from sow.logging import transition_fields
from sow.models import Project, now_iso
from sow.typeconfig import ProjectTypeConfig, TransitionConfig

logger = logging.getLogger(__name__)


def _always() -> bool:
    return True


@dataclass(frozen=True)
class BoundTransition:
    """A transition template with its guard and effects closed over one project."""

    config: TransitionConfig
    guard: Callable[[], bool]
    on_entry: Callable[[], None] | None = None
    on_exit: Callable[[], None] | None = None

    @property
    def event(self) -> str:
        return self.config.event

    @property
    def to_state(self) -> str:
        return self.config.to_state

    def allowed(self) -> bool:
        """Evaluate the guard.

        Raises:
            GuardEvaluationError: If the guard raises instead of answering.
        """
        try:
            return bool(self.guard())
        except Exception as exc:
            what = f"guard '{self.config.guard_description or self.event}'"
            raise GuardEvaluationError(self.config.from_state, what, exc, event=self.event) from exc


@dataclass(frozen=True)
class FiredTransition:
    event: str
    from_state: str
    to_state: str


def bind(config: ProjectTypeConfig, project: Project, initial_state: str) -> BoundMachine:
    """Bind ``config`` to ``project``, starting at ``initial_state``.

    Binding does not mutate the project. The same config may be bound to
    any number of projects.

    Raises:
        ValidationError: If ``initial_state`` is not a state of the config.
    """
    if initial_state not in config.states():
        msg = f"current state {initial_state} is not a state of project type '{config.name}'"
        raise ValidationError([msg], project=project.name)
    bound = [
        BoundTransition(
            config=t,
            guard=partial(t.guard.func, project) if t.guard else _always,
            on_entry=partial(t.on_entry, project) if t.on_entry else None,
            on_exit=partial(t.on_exit, project) if t.on_exit else None,
        )
        for t in config.transitions
    ]
    return BoundMachine(config, project, initial_state, bound)


class BoundMachine:
    """Fires events against one project. Built by ``bind``; not persisted."""

    def __init__(
        self, config: ProjectTypeConfig, project: Project, initial_state: str, transitions: list[BoundTransition]
    ) -> None:
        self.config = config
        self.project = project
        self._state = initial_state
        self._transitions = transitions

    @property
    def state(self) -> str:
        return self._state

    # -- Queries ------------------------------------------------------------

    def transitions_from_current(self) -> list[BoundTransition]:
        """Configured transitions from the current state, in declaration order."""
        return [t for t in self._transitions if t.config.from_state == self._state]

    def configured_events(self) -> list[str]:
        return sorted(t.event for t in self.transitions_from_current())

    def find(self, event: str) -> BoundTransition | None:
        for t in self.transitions_from_current():
            if t.event == event:
                return t
        return None

    def require(self, event: str) -> BoundTransition:
        """Return the transition for ``event`` from the current state.

        Raises:
            EventNotConfigured: If no such transition exists.
        """
        t = self.find(event)
        if t is None:
            raise EventNotConfigured(self._state, event, self.configured_events())
        return t

    def can_fire(self, event: str) -> bool:
        t = self.find(event)
        return t is not None and t.allowed()

    def evaluate_guard(self, event: str) -> bool:
        """Evaluate the guard for ``event`` without firing.

        Raises:
            EventNotConfigured: If no such transition exists.
        """
        return self.require(event).allowed()

    def permitted_events(self) -> list[str]:
        return sorted(t.event for t in self.transitions_from_current() if t.allowed())

    def prompt(self) -> str:
        return self.config.prompt(self._state, self.project)

    # -- Firing -------------------------------------------------------------

    def fire(self, event: str) -> FiredTransition:
        """Fire ``event`` from the current state.

        Raises:
            EventNotConfigured: No transition for ``event`` from the current state.
            GuardNotSatisfied: The guard is false; the project is unchanged.
            GuardEvaluationError: The guard raised; the project is unchanged.
            TransitionHookError: A hook raised; the project has been rolled back.
        """
        t = self.require(event)
        from_state = self._state
        if not t.allowed():
            logger.warning(
                "Guard blocked %s -> %s (%s)",
                from_state,
                t.to_state,
                event,
                extra=transition_fields(event, from_state, t.to_state),
            )
            raise GuardNotSatisfied(from_state, event, t.to_state, t.config.guard_description)

        snapshot = copy.deepcopy(self.project)
        try:
            self._run_exit(from_state, t.config)
            self._state = t.to_state
            self.project.statechart.current_state = t.to_state
            self._run_entry(t.to_state)
        except Exception as exc:
            self._restore(snapshot)
            self._state = from_state
            logger.warning(
                "Rolled back %s -> %s (%s): %s",
                from_state,
                t.to_state,
                event,
                exc,
                extra=transition_fields(event, from_state, t.to_state, error=str(exc)),
            )
            raise TransitionHookError(from_state, event, t.to_state, exc) from exc

        self.project.statechart.updated_at = now_iso()
        logger.info(
            "Fired %s: %s -> %s",
            event,
            from_state,
            t.to_state,
            extra=transition_fields(event, from_state, t.to_state, project=self.project.name),
        )
        return FiredTransition(event=event, from_state=from_state, to_state=t.to_state)

    def _hooks(self, attr: str, state: str, *, leaving: bool) -> list[Callable[[], None]]:
        hooks: list[Callable[[], None]] = []
        seen: set[int] = set()
        for t in self._transitions:
            endpoint = t.config.from_state if leaving else t.config.to_state
            if endpoint != state:
                continue
            template = getattr(t.config, attr)
            hook = getattr(t, attr)
            if hook is None or id(template) in seen:
                continue
            seen.add(id(template))
            hooks.append(hook)
        return hooks

    def _run_exit(self, state: str, fired: TransitionConfig) -> None:
        for hook in self._hooks("on_exit", state, leaving=True):
            hook()
        for phase in self.config.phases_ending_at(state):
            if fired.failed_phase == phase.name:
                mark_phase_failed(self.project, phase.name)
            else:
                mark_phase_completed(self.project, phase.name)

    def _run_entry(self, state: str) -> None:
        for hook in self._hooks("on_entry", state, leaving=False):
            hook()
        for phase in self.config.phases_starting_at(state):
            mark_phase_in_progress(self.project, phase.name)

    def _restore(self, snapshot: Project) -> None:
        # Restore in place: guard and hook closures hold this Project object.
        for f in dataclasses.fields(Project):
            setattr(self.project, f.name, getattr(snapshot, f.name))
