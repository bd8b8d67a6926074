"""
Feedback handlers - error sinks for batch operations.

Batch operations report every per-project failure to a handler instead of
raising, so one call can surface many independent failures. The stage decides
which method receives an error:
- handle_load_error: load-all and the load pass of recompile-all
- handle_unload_error: unload-all and unloads of dependents
- handle_compile_error: compile, cycle, resolution and swap failures of
  recompile-all
- handle_compiler_feedback: raw compiler output (warnings, syntax errors)
"""

import logging
from abc import ABC, abstractmethod

from hotload.errors import CompileError, LoadError, ProjectError, UnloadError

logger = logging.getLogger(__name__)


class FeedbackHandler(ABC):
    """Abstract base class for batch feedback handlers."""

    @abstractmethod
    def handle_load_error(self, error: LoadError) -> None:
        pass

    @abstractmethod
    def handle_unload_error(self, error: UnloadError) -> None:
        pass

    @abstractmethod
    def handle_compile_error(self, error: CompileError) -> None:
        pass

    def handle_compiler_feedback(self, message: str) -> None:
        """Receive compiler output. Ignored by default."""
        pass


class CollectingFeedbackHandler(FeedbackHandler):
    """
    Handler that keeps everything it receives.

    Usage:
        handler = CollectingFeedbackHandler()
        orchestrator.load_all(handler)
        for error in handler.errors:
            print(error.project_name, error)
    """

    def __init__(self) -> None:
        self.load_errors: list[LoadError] = []
        self.unload_errors: list[UnloadError] = []
        self.compile_errors: list[CompileError] = []
        self.compiler_feedback: list[str] = []

    def handle_load_error(self, error: LoadError) -> None:
        self.load_errors.append(error)

    def handle_unload_error(self, error: UnloadError) -> None:
        self.unload_errors.append(error)

    def handle_compile_error(self, error: CompileError) -> None:
        self.compile_errors.append(error)

    def handle_compiler_feedback(self, message: str) -> None:
        self.compiler_feedback.append(message)

    @property
    def errors(self) -> list[ProjectError]:
        """All errors in the order: compile, unload, load."""
        return [*self.compile_errors, *self.unload_errors, *self.load_errors]

    def errors_for(self, name: str) -> list[ProjectError]:
        """All errors attributed to the project with the given name."""
        return [e for e in self.errors if e.project_name == name]


class LoggingFeedbackHandler(FeedbackHandler):
    """Handler that writes everything to a logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def _warn(self, stage: str, error: ProjectError) -> None:
        name = error.project_name or "<general>"
        self._log.warning(f"[{stage}] {name}: {error}", extra={"project": name, "operation": stage})

    def handle_load_error(self, error: LoadError) -> None:
        self._warn("load", error)

    def handle_unload_error(self, error: UnloadError) -> None:
        self._warn("unload", error)

    def handle_compile_error(self, error: CompileError) -> None:
        self._warn("compile", error)

    def handle_compiler_feedback(self, message: str) -> None:
        self._log.info(message)
