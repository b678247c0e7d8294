"""Advance orchestration -- auto, explicit, list, and dry-run modes.

The four modes are mutually exclusive; ``resolve_mode`` validates the flag
combination before any project state is touched. Only auto and explicit
mode can mutate the project, and only when a transition actually fires.
List and dry-run evaluate guards but never run an entry or exit hook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from sow.branching import resolve_auto_transition
from sow.machine import BoundMachine

logger = logging.getLogger(__name__)

AdvanceMode = Literal["auto", "explicit", "list", "dry_run"]


def resolve_mode(event: str | None, *, list_only: bool = False, dry_run: bool = False) -> AdvanceMode:
    """Map the advance arguments to a mode.

    Raises:
        ValueError: If the combination of arguments is not allowed.
    """
    if list_only and event:
        msg = "cannot specify event argument with --list flag"
        raise ValueError(msg)
    if list_only and dry_run:
        msg = "cannot use --list and --dry-run together"
        raise ValueError(msg)
    if dry_run and not event:
        msg = "--dry-run requires an event argument"
        raise ValueError(msg)
    if list_only:
        return "list"
    if dry_run:
        return "dry_run"
    if event:
        return "explicit"
    return "auto"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdvanceResult:
    """A transition that fired in auto or explicit mode."""

    mode: AdvanceMode
    event: str
    from_state: str
    to_state: str

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode, "event": self.event, "from": self.from_state, "to": self.to_state}


@dataclass(frozen=True)
class TransitionOption:
    event: str
    to_state: str
    description: str
    guard_description: str
    blocked: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "to": self.to_state,
            "description": self.description,
            "guard_description": self.guard_description,
            "blocked": self.blocked,
        }


@dataclass(frozen=True)
class TransitionListing:
    """Every configured transition from the current state, flagged by guard result."""

    current_state: str
    options: tuple[TransitionOption, ...]

    @property
    def is_terminal(self) -> bool:
        return not self.options

    @property
    def all_blocked(self) -> bool:
        return bool(self.options) and all(o.blocked for o in self.options)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_state": self.current_state,
            "transitions": [o.to_dict() for o in self.options],
            "terminal": self.is_terminal,
        }


@dataclass(frozen=True)
class DryRunResult:
    current_state: str
    event: str
    to_state: str
    description: str
    guard_description: str
    valid: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_state": self.current_state,
            "event": self.event,
            "to": self.to_state,
            "description": self.description,
            "guard_description": self.guard_description,
            "valid": self.valid,
        }


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


def advance_auto(machine: BoundMachine) -> AdvanceResult:
    """Fire the event the current state resolves to on its own.

    Raises:
        NoMatchingBranch, EventNotConfigured, AmbiguousIntent, TerminalState:
            when no single event can be chosen.
        GuardNotSatisfied: when the chosen transition is blocked.
    """
    transition = resolve_auto_transition(machine.config, machine.project, machine.state)
    fired = machine.fire(transition.event)
    return AdvanceResult("auto", fired.event, fired.from_state, fired.to_state)


def advance_explicit(machine: BoundMachine, event: str) -> AdvanceResult:
    fired = machine.fire(event)
    return AdvanceResult("explicit", fired.event, fired.from_state, fired.to_state)


def list_transitions(machine: BoundMachine) -> TransitionListing:
    options = tuple(
        TransitionOption(
            event=t.event,
            to_state=t.to_state,
            description=t.config.description,
            guard_description=t.config.guard_description,
            blocked=not t.allowed(),
        )
        for t in sorted(machine.transitions_from_current(), key=lambda t: t.event)
    )
    return TransitionListing(current_state=machine.state, options=options)


def dry_run(machine: BoundMachine, event: str) -> DryRunResult:
    """Evaluate ``event``'s guard without firing.

    Raises:
        EventNotConfigured: If ``event`` has no transition from the current state.
    """
    t = machine.require(event)
    return DryRunResult(
        current_state=machine.state,
        event=event,
        to_state=t.to_state,
        description=t.config.description,
        guard_description=t.config.guard_description,
        valid=machine.evaluate_guard(event),
    )


def advance(
    machine: BoundMachine, event: str | None = None, *, list_only: bool = False, dry_run_only: bool = False
) -> AdvanceResult | TransitionListing | DryRunResult:
    """Run one advance in the mode selected by the arguments."""
    mode = resolve_mode(event, list_only=list_only, dry_run=dry_run_only)
    logger.debug("advance mode=%s event=%s state=%s", mode, event, machine.state)
    if mode == "list":
        return list_transitions(machine)
    if not event:
        return advance_auto(machine)
    if mode == "dry_run":
        return dry_run(machine, event)
    return advance_explicit(machine, event)
