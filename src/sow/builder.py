"""Fluent builder producing an immutable ProjectTypeConfig.

Declaration order is preserved: ``type-info`` and ``status`` list phases
and transitions in the order a project type declares them. Structural
problems detectable at declaration time (duplicate phases, conflicting
determiners, malformed branches) raise immediately; whole-graph checks run
in ``build()``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sow.branching import BranchOn, expand_branch, make_determiner
from sow.errors import ConfigurationError
from sow.typeconfig import (
    Action,
    BranchConfig,
    BranchPath,
    Determiner,
    FieldSchema,
    GuardTemplate,
    Initializer,
    PhaseConfig,
    ProjectTypeConfig,
    PromptGenerator,
    TransitionConfig,
)

logger = logging.getLogger(__name__)


class ProjectTypeConfigBuilder:
    """Accumulates phases, transitions, branches and prompts for one project type."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._description = ""
        self._initial_state = ""
        self._phases: list[PhaseConfig] = []
        self._transitions: list[TransitionConfig] = []
        self._on_advance: dict[str, Determiner] = {}
        self._branches: dict[str, BranchConfig] = {}
        self._prompts: dict[str, PromptGenerator] = {}
        self._orchestrator_prompt: PromptGenerator | None = None
        self._initializer: Initializer | None = None

    # -- Declarations -------------------------------------------------------

    def with_description(self, description: str) -> ProjectTypeConfigBuilder:
        self._description = description
        return self

    def with_phase(
        self,
        name: str,
        *,
        start_state: str,
        end_state: str,
        inputs: Iterable[str] = (),
        outputs: Iterable[str] = (),
        supports_tasks: bool = False,
        metadata_schema: Iterable[FieldSchema] = (),
    ) -> ProjectTypeConfigBuilder:
        """Declare a phase spanning ``start_state`` .. ``end_state``.

        ``inputs``/``outputs`` are artifact-type allow-lists; empty means any type.
        """
        if any(p.name == name for p in self._phases):
            raise ConfigurationError(self._name, f"duplicate phase '{name}'")
        self._phases.append(
            PhaseConfig(
                name=name,
                start_state=start_state,
                end_state=end_state,
                allowed_inputs=tuple(inputs),
                allowed_outputs=tuple(outputs),
                supports_tasks=supports_tasks,
                metadata_schema=tuple(metadata_schema),
            )
        )
        return self

    def set_initial_state(self, state: str) -> ProjectTypeConfigBuilder:
        self._initial_state = state
        return self

    def add_transition(
        self,
        from_state: str,
        to_state: str,
        event: str,
        *,
        guard: GuardTemplate | None = None,
        on_entry: Action | None = None,
        on_exit: Action | None = None,
        description: str = "",
        failed_phase: str = "",
    ) -> ProjectTypeConfigBuilder:
        self._transitions.append(
            TransitionConfig(
                from_state=from_state,
                to_state=to_state,
                event=event,
                guard=guard,
                on_entry=on_entry,
                on_exit=on_exit,
                description=description,
                failed_phase=failed_phase,
            )
        )
        return self

    def on_advance(self, state: str, determiner: Determiner) -> ProjectTypeConfigBuilder:
        """Register the rule auto mode uses to pick an event from ``state``."""
        if state in self._on_advance:
            raise ConfigurationError(self._name, f"state {state} already has an event determiner")
        self._on_advance[state] = determiner
        return self

    def add_branch(self, from_state: str, on: BranchOn, *paths: BranchPath) -> ProjectTypeConfigBuilder:
        """Declare a discriminated branch; expands to transitions plus a determiner."""
        if from_state in self._on_advance:
            raise ConfigurationError(
                self._name, f"state {from_state} already has an event determiner; cannot add a branch"
            )
        branch, transitions = expand_branch(self._name, from_state, on, paths)
        self._branches[from_state] = branch
        self._transitions.extend(transitions)
        self._on_advance[from_state] = make_determiner(branch)
        return self

    def with_prompt(self, state: str, generator: PromptGenerator) -> ProjectTypeConfigBuilder:
        self._prompts[state] = generator
        return self

    def with_orchestrator_prompt(self, generator: PromptGenerator) -> ProjectTypeConfigBuilder:
        self._orchestrator_prompt = generator
        return self

    def with_initializer(self, initializer: Initializer) -> ProjectTypeConfigBuilder:
        self._initializer = initializer
        return self

    # -- Build --------------------------------------------------------------

    def _check(self) -> list[str]:
        errors: list[str] = []
        if not self._initial_state:
            errors.append("no initial state set")
        if not self._phases:
            errors.append("no phases declared")

        endpoints = {t.from_state for t in self._transitions} | {t.to_state for t in self._transitions}
        for p in self._phases:
            if p.start_state not in endpoints:
                errors.append(f"phase '{p.name}' start state {p.start_state} does not appear in any transition")
            if p.end_state not in endpoints:
                errors.append(f"phase '{p.name}' end state {p.end_state} does not appear in any transition")

        seen: set[tuple[str, str]] = set()
        phase_names = {p.name for p in self._phases}
        for t in self._transitions:
            key = (t.from_state, t.event)
            if key in seen:
                errors.append(f"duplicate transition for event '{t.event}' from state {t.from_state}")
            seen.add(key)
            if t.failed_phase and t.failed_phase not in phase_names:
                errors.append(f"transition '{t.event}' names unknown failed phase '{t.failed_phase}'")

        for state in self._on_advance:
            if not any(t.from_state == state for t in self._transitions):
                errors.append(f"event determiner registered for state {state} which has no transitions")
        return errors

    def build(self) -> ProjectTypeConfig:
        """Return the immutable configuration.

        Raises:
            ConfigurationError: Listing every consistency problem found.
        """
        errors = self._check()
        if errors:
            raise ConfigurationError(self._name, "; ".join(errors))
        logger.debug(
            "Built project type %s (%d phases, %d transitions)", self._name, len(self._phases), len(self._transitions)
        )
        return ProjectTypeConfig(
            name=self._name,
            description=self._description,
            initial_state=self._initial_state,
            phases=tuple(self._phases),
            transitions=tuple(self._transitions),
            on_advance=dict(self._on_advance),
            branches=dict(self._branches),
            prompts=dict(self._prompts),
            orchestrator_prompt=self._orchestrator_prompt,
            initializer=self._initializer,
        )
