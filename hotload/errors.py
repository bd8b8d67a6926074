"""
Error classes for hotload.

Two reporting channels exist and the error types are shared between them:
- Batch operations (load-all, unload-all, recompile-all) never raise per-project
  failures. They hand a ProjectError to the caller-supplied feedback handler and
  keep going, because one batch call must report many independent failures.
- Single-project operations (recompile, load, unload) raise exactly one
  ProjectError describing what has and has not happened to the project.

ConsistencyError is the exception to both: it signals a broken internal
invariant and is always raised.
"""


class HotloadError(Exception):
    """Base exception for hotload."""
    pass


class ConfigError(HotloadError):
    """Configuration validation error."""
    pass


class DependencyError(HotloadError):
    """Raised when a project's dependency declaration cannot be read or parsed."""
    pass


class ConsistencyError(HotloadError):
    """
    Internal invariant violated.

    Examples:
    - A project's binary directory is not where the recompile protocol expects it
    - A cycle among projects that are all loaded

    Never user-recoverable.
    """
    pass


class ProjectError(HotloadError):
    """
    Failure attributed to a single project.

    Attributes:
        project: The project the failure belongs to, or None for general failures
        caused_by: The project whose failure made this one fail, for failures
            propagated through the dependency graph
        cause: The underlying error when a stage error wraps another kind
            (e.g. a LoadError reported for a CycleError)
    """

    def __init__(self, project, message: str, caused_by=None, cause: "ProjectError | None" = None):
        super().__init__(message)
        self.project = project
        self.message = message
        self.caused_by = caused_by
        self.cause = cause

    @property
    def project_name(self) -> str | None:
        return None if self.project is None else self.project.name

    @classmethod
    def wrap(cls, error: "ProjectError") -> "ProjectError":
        """Report an error of another kind as this stage's error."""
        return cls(error.project, error.message, caused_by=error.caused_by, cause=error)


class ResolutionError(ProjectError):
    """Bad, missing or cross-registry dependency declaration."""
    pass


class CycleError(ProjectError):
    """Direct or transitive circular dependency."""
    pass


class CompileError(ProjectError):
    """Raised when a project cannot be compiled."""
    pass


class SwapError(CompileError):
    """
    Replacing the default binary directory with the freshly compiled one failed.

    The project may be left without binaries: the old directory can already be
    gone while the new one was not moved into place.
    """
    pass


class LoadError(ProjectError):
    """Raised when a project cannot be loaded."""
    pass


class UnloadError(ProjectError):
    """Raised when a project cannot be (cleanly) unloaded."""
    pass


class DependencyOrderViolation(ProjectError):
    """Recompile attempted while a project depending on it is loaded."""
    pass
