"""
Lifecycle and artifact state enums for projects.
"""

from enum import Enum


# Binary directory names. The side name only exists on disk while a freshly
# compiled artifact waits to replace the default one.
DEFAULT_BIN_DIR_NAME = "bin"
PENDING_BIN_DIR_NAME = "bin_new"


class LifecycleState(str, Enum):
    """Durable lifecycle state of a project."""
    UNLOADED = "unloaded"
    LOADED = "loaded"


class BinaryState(str, Enum):
    """
    Where the compiler output of a project currently goes.

    STABLE: output goes to the default binary directory ("bin")
    PENDING: a new artifact is being or has been written to the side
        directory ("bin_new") and still has to be swapped into place
    """
    STABLE = "stable"
    PENDING = "pending"

    @property
    def dir_name(self) -> str:
        if self is BinaryState.PENDING:
            return PENDING_BIN_DIR_NAME
        return DEFAULT_BIN_DIR_NAME


class UnloadMethod(str, Enum):
    """
    How an unload treats loaded projects that depend on the unloaded one.

    EXCEPTION_ON_LOADED_DEPENDENTS: refuse to unload while dependents are loaded
    UNLOAD_DEPENDENTS: unload the dependents (transitively) first
    IGNORE_DEPENDENTS: unload only this project; the caller guarantees the
        dependents have been handled
    """
    EXCEPTION_ON_LOADED_DEPENDENTS = "exception_on_loaded_dependents"
    UNLOAD_DEPENDENTS = "unload_dependents"
    IGNORE_DEPENDENTS = "ignore_dependents"
