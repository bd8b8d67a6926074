"""
RecompileTransaction - recompile one project and swap its binaries.

Steps:
1. Refuse when loaded projects depend on the project
2. Compile into the side directory (bin_new/)
3. Unload the project if it is loaded
4. Replace bin/ with bin_new/
5. Load the project

Whatever fails, the project is never left with a pending binary directory.
Up to and including step 3 a failure leaves the old binaries in place.
"""

import logging
from typing import Optional, TYPE_CHECKING

from hotload.errors import CompileError, ConsistencyError, DependencyOrderViolation, UnloadError
from hotload.schemas import UnloadMethod
from hotload.utils import join_names

if TYPE_CHECKING:
    from hotload.handlers import FeedbackHandler
    from hotload.project import Project
    from hotload.registry import ProjectRegistry

logger = logging.getLogger(__name__)


class RecompileTransaction:
    """Single-project recompile. Errors are raised, not reported."""

    def __init__(self, registry: "ProjectRegistry"):
        self._registry = registry

    def run(
        self,
        project: "Project",
        feedback: Optional["FeedbackHandler"] = None,
        unload_handler: Optional["FeedbackHandler"] = None,
    ) -> None:
        """
        Recompile, unload (if loaded) and load the project.

        Args:
            project: The project to recompile
            feedback: Receives compiler feedback
            unload_handler: Receives errors from tearing down the old instance

        Raises:
            ValueError: If the project is not part of this registry
            DependencyOrderViolation: If loaded projects depend on the
                project. Nothing was changed.
            CompileError: If compilation failed. The old binaries are intact
                and the project is still in its previous lifecycle state.
            SwapError: If replacing the binaries failed. The project is
                unloaded and may have no binaries.
            LoadError: If loading the new binaries failed. The new binaries
                are in place and the project is unloaded.
            ConsistencyError: If the project has a pending binary directory
                already, or could not be unloaded
        """
        if project.registry is not self._registry:
            raise ValueError("The given project was created for a different registry.")
        if not self._registry.contains(project):
            raise ValueError(f"The given project has not been added to the registry: {project.name}")

        if project.is_loaded:
            dependents = self._registry.get_loaded_dependents(project)
            if dependents:
                raise DependencyOrderViolation(
                    project,
                    f"Project cannot be recompiled while there are projects loaded that depend on it."
                    f" Depending project(s): {join_names(dependents)}.",
                )

        logger.info(f"Recompiling project: {project.name}")
        project.begin_pending()
        try:
            project.compile(feedback)
        except CompileError:
            project.discard_pending()
            raise

        if project.is_loaded:
            try:
                project.unload(UnloadMethod.IGNORE_DEPENDENTS, unload_handler)
            except UnloadError as e:
                project.discard_pending()
                raise ConsistencyError(
                    f"Project \"{project.name}\" could not be unloaded although no loaded project depends on it: {e}"
                ) from e

        project.commit_pending()
        project.load()
        logger.info(f"Recompiled project: {project.name}")
