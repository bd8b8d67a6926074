"""
hotload.schemas - Data model for the project orchestrator.

Project dependencies:
1. ExternalDependency: opaque reference hotload does not manage
2. ProjectDependency: reference to another project, resolved against a registry

Project states:
- LifecycleState: UNLOADED / LOADED
- BinaryState: STABLE (output in "bin") / PENDING (new output in "bin_new")
- UnloadMethod: how an unload treats loaded dependents

Batch results:
- LoadAllResult: loaded / errors
- RecompileAllResult: added / removed / compiled / unloaded / loaded / errors
"""

from .dependency import (
    Dependency,
    ExternalDependency,
    ProjectDependency,
    parse_dependency,
)
from .state import (
    DEFAULT_BIN_DIR_NAME,
    PENDING_BIN_DIR_NAME,
    BinaryState,
    LifecycleState,
    UnloadMethod,
)
from .results import (
    LoadAllResult,
    RecompileAllResult,
)

__all__ = [
    # Dependencies
    "Dependency",
    "ExternalDependency",
    "ProjectDependency",
    "parse_dependency",
    # States
    "DEFAULT_BIN_DIR_NAME",
    "PENDING_BIN_DIR_NAME",
    "BinaryState",
    "LifecycleState",
    "UnloadMethod",
    # Results
    "LoadAllResult",
    "RecompileAllResult",
]
