"""Built-in project types."""

from __future__ import annotations

from collections.abc import Callable

from sow.projects.design import new_design_config
from sow.projects.exploration import new_exploration_config
from sow.projects.standard import new_standard_config
from sow.typeconfig import ProjectTypeConfig

BUILTIN_TYPES: tuple[Callable[[], ProjectTypeConfig], ...] = (
    new_standard_config,
    new_exploration_config,
    new_design_config,
)

__all__ = ["BUILTIN_TYPES", "new_design_config", "new_exploration_config", "new_standard_config"]
