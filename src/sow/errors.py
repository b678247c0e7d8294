"""Exception taxonomy for configuration, validation, and transition failures.

All exceptions subclass ValueError so entry points can catch a single base
class. Transition errors carry enough context (current state, event, target,
guard description) for a caller to render an actionable message, plus a
``hint`` naming the command that helps the user recover.
"""

from __future__ import annotations

from collections.abc import Sequence

# ---------------------------------------------------------------------------
# Configuration-time
# ---------------------------------------------------------------------------


class ConfigurationError(ValueError):
    """Raised when a project type definition violates a builder invariant."""

    def __init__(self, type_name: str, message: str) -> None:
        self.type_name = type_name
        super().__init__(f"Invalid configuration for project type '{type_name}': {message}")


class UnknownProjectType(ValueError):
    """Raised when a record's type tag has no registered configuration."""

    def __init__(self, type_name: str, available: Sequence[str] = ()) -> None:
        self.type_name = type_name
        self.available = tuple(available)
        known = ", ".join(self.available) if self.available else "(none)"
        super().__init__(f"unknown project type '{type_name}' (registered types: {known})")


class ValidationError(ValueError):
    """Raised when a project record does not match its type configuration."""

    def __init__(self, errors: Sequence[str], *, project: str = "") -> None:
        self.errors = tuple(errors)
        self.project = project
        prefix = f"Project '{project}' is invalid" if project else "Project state is invalid"
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


# ---------------------------------------------------------------------------
# Transition-time (recoverable by the caller)
# ---------------------------------------------------------------------------


class TransitionError(ValueError):
    """Base class for failures while resolving or firing a transition."""

    def __init__(
        self,
        message: str,
        *,
        current_state: str,
        event: str = "",
        target_state: str = "",
        guard_description: str = "",
        hint: str = "",
    ) -> None:
        self.current_state = current_state
        self.event = event
        self.target_state = target_state
        self.guard_description = guard_description
        self.hint = hint
        super().__init__(f"{message}. {hint}" if hint else message)


class EventNotConfigured(TransitionError):
    """Raised when an event has no transition from the current state."""

    def __init__(self, current_state: str, event: str, available: Sequence[str] = ()) -> None:
        self.available = tuple(available)
        known = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"event '{event}' is not configured for state {current_state} (configured events: {known})",
            current_state=current_state,
            event=event,
            hint="Use 'sow advance --list' to see available transitions.",
        )


class GuardNotSatisfied(TransitionError):
    """Raised when a transition's guard evaluates false."""

    def __init__(self, current_state: str, event: str, target_state: str, guard_description: str) -> None:
        described = f": {guard_description}" if guard_description else ""
        super().__init__(
            f"transition {current_state} -> {target_state} ({event}) blocked by guard{described}",
            current_state=current_state,
            event=event,
            target_state=target_state,
            guard_description=guard_description,
            hint=f"Use 'sow advance --dry-run {event}' to check the guard condition.",
        )


class NoMatchingBranch(TransitionError):
    """Raised when a discriminator returns a value with no registered branch."""

    def __init__(self, current_state: str, value: str, available: Sequence[str]) -> None:
        self.value = value
        self.available = tuple(available)
        super().__init__(
            f"no branch defined for discriminator value {value!r} from state {current_state} "
            f"(available values: {', '.join(self.available)})",
            current_state=current_state,
            hint="Use 'sow advance --list' to see available transitions.",
        )


class AmbiguousIntent(TransitionError):
    """Raised in auto mode when several transitions exist and none is preferred."""

    def __init__(self, current_state: str, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        super().__init__(
            f"state {current_state} has multiple transitions, choose one explicitly: {', '.join(self.candidates)}",
            current_state=current_state,
            hint="Run 'sow advance <event>' with one of the listed events, or 'sow advance --list' for details.",
        )


class TerminalState(TransitionError):
    """Raised in auto mode when the current state has no outgoing transitions."""

    def __init__(self, current_state: str) -> None:
        super().__init__(
            f"no transitions available from state {current_state}",
            current_state=current_state,
            hint="This may be a terminal state.",
        )


class TransitionHookError(TransitionError):
    """Raised when an entry/exit hook fails; the record has been rolled back."""

    def __init__(self, current_state: str, event: str, target_state: str, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(
            f"hook failed during {current_state} -> {target_state} ({event}), changes rolled back: {cause}",
            current_state=current_state,
            event=event,
            target_state=target_state,
        )


class GuardEvaluationError(TransitionError):
    """Raised when a guard or event determiner itself fails instead of answering."""

    def __init__(self, current_state: str, what: str, cause: BaseException, *, event: str = "") -> None:
        self.cause = cause
        super().__init__(
            f"{what} failed in state {current_state}: {type(cause).__name__}: {cause}",
            current_state=current_state,
            event=event,
            hint="Check the project record for missing or malformed fields.",
        )
