"""
ProjectRegistry - the authoritative name -> Project map.

The registry provides:
- Adding and removing projects (a loaded project cannot be removed)
- Lookups by name and queries over loaded / unloaded projects
- Discovery of new project directories through a ProjectStore
- Removal of projects whose directory was deleted
- The collaborators (resolver, compiler, loader) shared by all its projects
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from hotload.project import Project, ProjectStateListener
from hotload.schemas import ProjectDependency, UnloadMethod

if TYPE_CHECKING:
    from hotload.backends.base import Compiler, Loader
    from hotload.handlers import FeedbackHandler
    from hotload.instance import ProjectInstance
    from hotload.manifest import DependencyResolver
    from hotload.store import ProjectStore

logger = logging.getLogger(__name__)


class ProjectRegistry:
    """
    Registry owning all projects of one projects directory.

    Usage:
        registry = ProjectRegistry(
            resolver=ManifestDependencyResolver(),
            compiler=PythonCompiler(),
            loader=PythonLoader(),
            store=DirectoryProjectStore(projects_dir),
        )
        registry.add_projects_from_store()
    """

    def __init__(
        self,
        resolver: "DependencyResolver",
        compiler: "Compiler",
        loader: "Loader",
        store: Optional["ProjectStore"] = None,
        listener: Optional[ProjectStateListener] = None,
    ):
        self._projects: dict[str, Project] = {}
        self._resolver = resolver
        self._compiler = compiler
        self._loader = loader
        self._store = store
        self._listener = listener

    @property
    def store(self) -> Optional["ProjectStore"]:
        return self._store

    # -- membership ----------------------------------------------------------

    def create_project(self, name: str, project_dir: Path | str, disabled: bool = False) -> Project:
        """
        Create a project bound to this registry and add it.

        Raises:
            ValueError: If a project with this name already exists
        """
        if name in self._projects:
            raise ValueError(f"Project already exists: {name}")
        project = Project(
            name,
            project_dir,
            registry=self,
            resolver=self._resolver,
            compiler=self._compiler,
            loader=self._loader,
            listener=self._listener,
            disabled=disabled,
        )
        self._projects[name] = project
        return project

    def add_project(self, project: Project) -> bool:
        """
        Add a project. Nothing happens if a project with that name exists.

        Returns:
            True if the project was added

        Raises:
            ValueError: If the project belongs to a different registry
        """
        if project.registry is not self:
            raise ValueError("The given project was created for a different registry.")
        if project.name in self._projects:
            return False
        self._projects[project.name] = project
        return True

    def remove_project(self, project: Project) -> bool:
        """
        Remove a project.

        Returns:
            True if the project was removed, False if it was not registered

        Raises:
            ValueError: If the project is loaded
        """
        if project.is_loaded:
            raise ValueError(f"Cannot remove a loaded project: {project.name}")
        if self._projects.get(project.name) is not project:
            return False
        del self._projects[project.name]
        return True

    def contains(self, project: Project) -> bool:
        return self._projects.get(project.name) is project

    # -- queries -------------------------------------------------------------

    def get_project(self, name: str) -> Optional[Project]:
        return self._projects.get(name)

    def has_project(self, name: str) -> bool:
        return name in self._projects

    def get_projects(self) -> list[Project]:
        return list(self._projects.values())

    def get_project_names(self) -> list[str]:
        return list(self._projects)

    def get_loaded_project_names(self) -> list[str]:
        return [name for name, p in self._projects.items() if p.is_loaded]

    def get_unloaded_project_names(self) -> list[str]:
        return [name for name, p in self._projects.items() if not p.is_loaded]

    def get_project_instance(self, name: str) -> Optional["ProjectInstance"]:
        project = self._projects.get(name)
        return None if project is None else project.instance

    def get_project_instances(self) -> list["ProjectInstance"]:
        return [p.instance for p in self._projects.values() if p.instance is not None]

    def get_loaded_dependents(self, project: Project) -> set[Project]:
        """Loaded projects whose compiled dependencies reference the given project."""
        dependents: set[Project] = set()
        for other in self._projects.values():
            if other is project or not other.is_loaded or other.dependencies is None:
                continue
            for dep in other.dependencies:
                if isinstance(dep, ProjectDependency) and dep.project is project:
                    dependents.add(other)
                    break
        return dependents

    def __len__(self) -> int:
        return len(self._projects)

    # -- store-backed discovery and removal -----------------------------------

    def add_projects_from_store(self) -> set[Project]:
        """
        Add a project for every new, non-ignored directory in the store.

        Returns:
            The added projects
        """
        added: set[Project] = set()
        if self._store is None:
            return added
        for project_dir in self._store.list_project_dirs():
            if project_dir.name not in self._projects:
                added.add(self.create_project(project_dir.name, project_dir))
        if added:
            logger.info(f"Discovered {len(added)} new project(s): {', '.join(sorted(p.name for p in added))}")
        return added

    def add_project_from_store(self, name: str) -> Optional[Project]:
        """
        Add the named project if the store has a matching directory.

        Returns:
            The added project, None if it was already registered or not found
        """
        if name in self._projects or self._store is None:
            return None
        project_dir = self._store.find_project_dir(name)
        if project_dir is None:
            return None
        return self.create_project(name, project_dir)

    def _is_deleted(self, project: Project) -> bool:
        if self._store is not None:
            return not self._store.exists(project)
        return not project.project_dir.exists()

    def remove_unloaded_projects_if_deleted(self) -> set[Project]:
        """
        Remove unloaded projects whose project directory no longer exists.

        Returns:
            The removed projects
        """
        removed = {
            p for p in self._projects.values()
            if not p.is_loaded and self._is_deleted(p)
        }
        for project in removed:
            del self._projects[project.name]
        if removed:
            logger.info(f"Removed {len(removed)} deleted project(s): {', '.join(sorted(p.name for p in removed))}")
        return removed

    def remove_unloaded_project_if_deleted(self, name: str) -> Optional[Project]:
        """Remove the named project if it is unloaded and its directory is gone."""
        project = self._projects.get(name)
        if project is not None and not project.is_loaded and self._is_deleted(project):
            del self._projects[name]
            return project
        return None

    def unload_and_remove_project_if_deleted(
        self, name: str, handler: Optional["FeedbackHandler"] = None
    ) -> Optional[list[Project]]:
        """
        Unload (with its dependents) and remove the named project if its directory is gone.

        Dependents are unloaded but stay registered.

        Returns:
            The unloaded projects, dependents first; an empty list when the
            project was removed without being loaded; None when it was not
            removed
        """
        project = self._projects.get(name)
        if project is None or not self._is_deleted(project):
            return None
        unloaded = project.unload(UnloadMethod.UNLOAD_DEPENDENTS, handler)
        del self._projects[name]
        return unloaded

    def clear(self, handler: Optional["FeedbackHandler"] = None) -> None:
        """Unload all projects and remove them."""
        from hotload.orchestrator import BatchOrchestrator

        BatchOrchestrator(self).unload_all(handler)
        self._projects.clear()
