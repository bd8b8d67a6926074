"""
Compiler and Loader protocols.

These are the collaborators a Project delegates to. The orchestrator never
calls them directly; it only drives Project.compile / load / unload in
dependency order.
"""

from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from hotload.handlers import FeedbackHandler
    from hotload.instance import ProjectInstance
    from hotload.project import Project


class Compiler(ABC):
    """Abstract base class for project compilers."""

    @abstractmethod
    def compile(self, project: "Project", feedback: Optional["FeedbackHandler"] = None) -> None:
        """
        Compile project.src_dir into project.output_dir.

        Args:
            project: The project to compile
            feedback: Receives compiler output through handle_compiler_feedback

        Raises:
            CompileError: If compilation fails. No partial artifact may be
                left in project.output_dir.
        """
        pass


class Loader(ABC):
    """Abstract base class for project loaders."""

    @abstractmethod
    def load(self, project: "Project") -> "ProjectInstance":
        """
        Create a running instance from project.bin_dir.

        Raises:
            LoadError: If the project cannot be loaded
        """
        pass

    @abstractmethod
    def unload(self, project: "Project", instance: Optional["ProjectInstance"]) -> None:
        """
        Tear down a running instance.

        Raises:
            UnloadError: If tearing down reported a failure. The project is
                considered unloaded regardless.
        """
        pass
