"""sow: declarative multi-phase project workflows with convention-based discovery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sow")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from sow.models import Artifact, Phase, Project, Task

__all__ = ["Artifact", "Phase", "Project", "Task", "__version__"]
