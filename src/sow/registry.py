"""Process-wide registry of project type configurations.

The registry is written once during an explicit initialization step
(``register_builtin_types``) and read-only afterwards. Nothing registers
itself on import, so import order never changes which types exist.
"""

from __future__ import annotations

import logging
import threading

from sow.errors import ConfigurationError, UnknownProjectType
from sow.projects import BUILTIN_TYPES
from sow.typeconfig import ProjectTypeConfig

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


class TypeRegistry:
    """Maps a project's type tag to its configuration."""

    def __init__(self) -> None:
        self._types: dict[str, ProjectTypeConfig] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, config: ProjectTypeConfig) -> None:
        """Add a configuration.

        Raises:
            RuntimeError: If the registry has been frozen.
            ConfigurationError: If the type name is already registered.
        """
        if self._frozen:
            msg = f"Cannot register project type '{config.name}': registry is frozen"
            raise RuntimeError(msg)
        if config.name in self._types:
            raise ConfigurationError(config.name, "type is already registered")
        logger.debug("Registering project type: %s", config.name)
        self._types[config.name] = config

    def freeze(self) -> None:
        self._frozen = True

    def get(self, type_name: str) -> ProjectTypeConfig:
        """Look up a configuration by type tag.

        Raises:
            UnknownProjectType: If nothing is registered under ``type_name``.
        """
        config = self._types.get(type_name)
        if config is None:
            raise UnknownProjectType(type_name, self.names())
        return config

    def names(self) -> list[str]:
        return sorted(self._types)

    def list_types(self) -> list[ProjectTypeConfig]:
        return [self._types[n] for n in self.names()]

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types


_default_registry = TypeRegistry()


def default_registry() -> TypeRegistry:
    return _default_registry


def register_builtin_types(registry: TypeRegistry | None = None) -> TypeRegistry:
    """Register the built-in project types and freeze the registry.

    Safe to call repeatedly; a frozen registry is returned unchanged.
    """
    reg = registry if registry is not None else _default_registry
    with _init_lock:
        if reg.frozen:
            return reg
        for factory in BUILTIN_TYPES:
            reg.register(factory())
        reg.freeze()
    logger.debug("Registered built-in project types: %s", ", ".join(reg.names()))
    return reg
