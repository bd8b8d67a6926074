"""
ProjectInstance - base class for the entry point of a loaded project.

A project names its entry point in project.yaml:

    main: mypackage.plugin:Plugin

The loader instantiates that class (a ProjectInstance subclass) and calls
on_load(); on_unload() is called before the project's modules are discarded.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from hotload.project import Project


class ProjectInstance:
    """Running instance of a loaded project."""

    def __init__(self) -> None:
        self.project: Optional["Project"] = None

    @property
    def name(self) -> str | None:
        return None if self.project is None else self.project.name

    def on_load(self) -> None:
        """Called after the instance was created."""
        pass

    def on_unload(self) -> None:
        """Called before the project's modules are discarded."""
        pass

    def get_dependency(self, name: str) -> Optional["ProjectInstance"]:
        """Get the running instance of another project, None if not loaded."""
        if self.project is None:
            return None
        return self.project.registry.get_project_instance(name)
