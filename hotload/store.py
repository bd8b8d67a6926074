"""
ProjectStore - discovers project directories.

A project is a sub-directory of the projects directory. Directories are
ignored when their name ends with ".disabled" (case-insensitive) or when they
contain a ".hlignored" marker file.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from hotload.project import Project


IGNORED_DIR_SUFFIX = ".disabled"
IGNORE_MARKER_FILE = ".hlignored"


class ProjectStore(ABC):
    """Abstract base class for project directory discovery."""

    @abstractmethod
    def list_project_dirs(self) -> list[Path]:
        """All non-ignored project directories, sorted by name."""
        pass

    @abstractmethod
    def find_project_dir(self, name: str) -> Optional[Path]:
        """The directory of the named project, None if absent or ignored."""
        pass

    @abstractmethod
    def exists(self, project: "Project") -> bool:
        """Whether the project's backing directory still exists."""
        pass


class DirectoryProjectStore(ProjectStore):
    """
    Project store backed by a single directory.

    Usage:
        store = DirectoryProjectStore("~/hotload/projects")
        for project_dir in store.list_project_dirs():
            ...
    """

    def __init__(self, projects_dir: Path | str):
        self._projects_dir = Path(projects_dir).expanduser()

    @property
    def projects_dir(self) -> Path:
        return self._projects_dir

    def list_project_dirs(self) -> list[Path]:
        if not self._projects_dir.is_dir():
            return []
        return sorted(
            (p for p in self._projects_dir.iterdir() if p.is_dir() and not self.should_ignore(p)),
            key=lambda p: p.name,
        )

    def find_project_dir(self, name: str) -> Optional[Path]:
        if not name or not self._projects_dir.is_dir():
            return None
        root = self._projects_dir.resolve()
        project_dir = (root / name).resolve()

        # Reject names that point outside the projects directory ("..", "a/b").
        if project_dir.parent != root or project_dir.name != name:
            return None
        if not project_dir.is_dir() or self.should_ignore(project_dir):
            return None
        return project_dir

    def exists(self, project: "Project") -> bool:
        return project.project_dir.is_dir()

    @staticmethod
    def should_ignore(project_dir: Path) -> bool:
        if project_dir.name.lower().endswith(IGNORED_DIR_SUFFIX):
            return True
        try:
            return any(
                f.is_file() and f.name.lower() == IGNORE_MARKER_FILE
                for f in project_dir.iterdir()
            )
        except OSError:
            return False
