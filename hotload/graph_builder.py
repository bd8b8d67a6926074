"""
GraphBuilder - turn dependency declarations into a DependencyGraph.

The graph only contains the projects passed in. Edges to projects outside
that subset are left out: they are assumed to be satisfied already (e.g. a
loaded dependency of a project that is being loaded). Problems with a
declaration do not abort the build; they are returned as ResolutionErrors
next to the graph.
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hotload.errors import DependencyError, ResolutionError
from hotload.graph import DependencyGraph
from hotload.project import Project
from hotload.schemas import Dependency, ProjectDependency

if TYPE_CHECKING:
    from hotload.registry import ProjectRegistry

logger = logging.getLogger(__name__)


@dataclass
class GraphBuildResult:
    """The generated graph and the errors that occurred while generating it."""
    graph: DependencyGraph[Project]
    errors: list[ResolutionError] = field(default_factory=list)


class GraphBuilder:
    """Builds dependency graphs over projects of one registry."""

    def __init__(self, registry: "ProjectRegistry"):
        self._registry = registry

    def build(self, projects: Collection[Project], use_source_dependencies: bool = False) -> GraphBuildResult:
        """
        Generate a dependency graph over the given projects.

        Args:
            projects: The projects to put in the graph
            use_source_dependencies: Use the dependencies declared in the
                source tree instead of the ones of the compiled project

        Returns:
            The graph and the resolution errors

        Raises:
            ValueError: If a project belongs to a different registry
        """
        for project in projects:
            if project.registry is not self._registry:
                raise ValueError(f"Project is managed by a different registry: {project.name}")

        members = set(projects)
        graph: DependencyGraph[Project] = DependencyGraph(projects)
        errors: list[ResolutionError] = []

        for project in projects:
            try:
                dependencies = self._dependencies_of(project, use_source_dependencies)
            except DependencyError as e:
                errors.append(ResolutionError(project, str(e)))
                continue

            for dep in dependencies:
                if not isinstance(dep, ProjectDependency):
                    continue

                if dep.registry is not self._registry:
                    errors.append(ResolutionError(
                        project, f"Dependency project is managed by a different registry: {dep.project_name}"
                    ))
                    continue

                if dep.project is None:
                    errors.append(ResolutionError(
                        project, f"Dependency project does not exist in the registry: {dep.project_name}"
                    ))
                    continue

                if dep.project in members:
                    graph.add_directed_edge(project, dep.project)

        logger.debug(f"Built {graph} with {len(errors)} resolution error(s)")
        return GraphBuildResult(graph=graph, errors=errors)

    @staticmethod
    def _dependencies_of(project: Project, use_source_dependencies: bool) -> list[Dependency]:
        if use_source_dependencies:
            return project.get_source_dependencies()
        if project.dependencies is None:
            project.init_dependencies()
        else:
            project.refresh_dependencies()
        return project.dependencies
