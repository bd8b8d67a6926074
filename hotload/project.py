"""
Project - a named unit that is compiled from source and loaded as an instance.

Directory layout of a project:
    <project_dir>/
        src/            source tree, including the project.yaml manifest
        bin/            compiled artifact currently in use
        bin_new/        freshly compiled artifact waiting to replace bin/
                        (only exists during a recompile)

A project delegates the actual work to collaborators shared through its
registry:
- DependencyResolver: reads the declared dependencies
- Compiler: turns src/ into a binary directory
- Loader: turns bin/ into a running ProjectInstance and tears it down

The binary directory the compiler writes to is selected by an explicit
BinaryState rather than by renaming a path attribute: begin_pending() points
the compiler at bin_new/, and commit_pending() / discard_pending() bring the
project back to STABLE.
"""

import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from hotload.errors import (
    ConsistencyError,
    DependencyError,
    LoadError,
    SwapError,
    UnloadError,
)
from hotload.schemas import (
    DEFAULT_BIN_DIR_NAME,
    PENDING_BIN_DIR_NAME,
    BinaryState,
    Dependency,
    LifecycleState,
    ProjectDependency,
    UnloadMethod,
)
from hotload.utils import join_names, remove_path

if TYPE_CHECKING:
    from hotload.backends.base import Compiler, Loader
    from hotload.handlers import FeedbackHandler
    from hotload.instance import ProjectInstance
    from hotload.manifest import DependencyResolver
    from hotload.registry import ProjectRegistry

logger = logging.getLogger(__name__)


class ProjectStateListener:
    """Receives project lifecycle notifications. Override what you need."""

    def on_load(self, project: "Project") -> None:
        pass

    def on_unload(self, project: "Project") -> None:
        pass


class Project:
    """
    A single managed project.

    Projects compare and hash by identity; the name is unique within the
    owning registry.
    """

    def __init__(
        self,
        name: str,
        project_dir: Path | str,
        registry: "ProjectRegistry",
        resolver: "DependencyResolver",
        compiler: "Compiler",
        loader: "Loader",
        listener: Optional[ProjectStateListener] = None,
        disabled: bool = False,
    ):
        self._name = name
        self._project_dir = Path(project_dir)
        self._registry = registry
        self._resolver = resolver
        self._compiler = compiler
        self._loader = loader
        self._listener = listener
        self.disabled = disabled

        self._state = LifecycleState.UNLOADED
        self._binary_state = BinaryState.STABLE
        self._dependencies: Optional[list[Dependency]] = None
        self._instance: Optional["ProjectInstance"] = None

    # -- identity and layout -------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> "ProjectRegistry":
        return self._registry

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    @property
    def src_dir(self) -> Path:
        return self._project_dir / "src"

    @property
    def bin_dir(self) -> Path:
        """The default binary directory, the one the loader reads."""
        return self._project_dir / DEFAULT_BIN_DIR_NAME

    @property
    def pending_bin_dir(self) -> Path:
        return self._project_dir / PENDING_BIN_DIR_NAME

    @property
    def output_dir(self) -> Path:
        """The directory the compiler has to write to in the current state."""
        return self._project_dir / self._binary_state.dir_name

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is LifecycleState.LOADED

    @property
    def binary_state(self) -> BinaryState:
        return self._binary_state

    @property
    def instance(self) -> Optional["ProjectInstance"]:
        return self._instance

    @property
    def dependencies(self) -> Optional[list[Dependency]]:
        """Dependencies of the compiled project, None until initialized."""
        return self._dependencies

    # -- dependencies --------------------------------------------------------

    def init_dependencies(self) -> None:
        """
        (Re)read the dependencies of the compiled project.

        Raises:
            DependencyError: If the compiled manifest cannot be read or parsed
        """
        self._dependencies = self._resolve(self._resolver.compiled_dependencies(self))

    def get_source_dependencies(self) -> list[Dependency]:
        """
        Read the dependencies currently declared in the source tree.

        These can differ from dependencies when the manifest was edited after
        the last compile.

        Raises:
            DependencyError: If the source manifest cannot be read or parsed
        """
        return self._resolve(self._resolver.source_dependencies(self))

    def refresh_dependencies(self) -> None:
        """Re-bind references to projects that were unknown or have been removed since."""
        if self._dependencies is not None:
            self._resolve(self._dependencies)

    def _resolve(self, dependencies: list[Dependency]) -> list[Dependency]:
        for dep in dependencies:
            if isinstance(dep, ProjectDependency) and self._is_stale(dep):
                dep.resolve(self._registry)
        return dependencies

    def _is_stale(self, dep: ProjectDependency) -> bool:
        if not dep.is_resolved:
            return True
        # References bound by another registry are left alone.
        if dep.registry is not self._registry:
            return False
        return dep.project is None or not self._registry.contains(dep.project)

    # -- compile and artifact swap -------------------------------------------

    def compile(self, feedback: Optional["FeedbackHandler"] = None) -> None:
        """
        Compile the sources into output_dir.

        Raises:
            CompileError: If compilation fails. Nothing is left in output_dir.
        """
        logger.debug(f"Compiling {self._name} into {self.output_dir}")
        self._compiler.compile(self, feedback)

    def begin_pending(self) -> None:
        """Point the compiler at the side directory."""
        if self._binary_state is not BinaryState.STABLE:
            raise ConsistencyError(
                f"Project '{self._name}' already has a pending binary directory."
            )
        self._binary_state = BinaryState.PENDING

    def discard_pending(self) -> None:
        """Delete the side directory and go back to the default one."""
        if self.pending_bin_dir.exists():
            remove_path(self.pending_bin_dir)
        self._binary_state = BinaryState.STABLE

    def commit_pending(self) -> None:
        """
        Replace the default binary directory with the side directory.

        The default directory is removed first and the side directory is then
        renamed into its place. The project is STABLE afterwards, also when
        the swap fails.

        Raises:
            ConsistencyError: If the project has no pending binary directory
            SwapError: If either step fails. The project may have lost its
                binaries in that case.
        """
        if self._binary_state is not BinaryState.PENDING:
            raise ConsistencyError(
                f"Project '{self._name}' has no pending binary directory to commit."
            )
        new_dir = self.pending_bin_dir
        self._binary_state = BinaryState.STABLE
        # Compiled dependencies belong to the old binaries.
        self._dependencies = None

        if self.bin_dir.exists() and not remove_path(self.bin_dir):
            raise SwapError(
                self,
                f"Failed to replace the old binary directory with the new binary directory because"
                f" the old binary directory could not be removed for project \"{self._name}\"."
                f" This can be fixed manually or by attempting another recompile. The project has"
                f" already been unloaded and some files of the current binary directory might be removed.",
            )
        try:
            new_dir.rename(self.bin_dir)
        except OSError as e:
            raise SwapError(
                self,
                f"Failed to rename the new binary directory to the default binary directory for"
                f" project \"{self._name}\" ({e}). This can be fixed manually or by attempting another"
                f" recompile. The project has already been unloaded and the current binary directory"
                f" has been removed.",
            ) from e

    # -- load / unload -------------------------------------------------------

    def load(self) -> None:
        """
        Load the compiled project.

        Raises:
            LoadError: If the project is already loaded, its dependencies are
                unknown or not loaded, or the loader fails
        """
        if self.is_loaded:
            raise LoadError(self, f"Project is already loaded: {self._name}")

        try:
            self.init_dependencies()
        except DependencyError as e:
            raise LoadError(self, f"Failed to read the dependencies of project {self._name}: {e}") from e

        for dep in self._dependencies:
            if not isinstance(dep, ProjectDependency):
                continue
            if dep.project is None:
                raise LoadError(self, f"Dependency project does not exist: {dep.project_name}")
            if not dep.project.is_loaded:
                raise LoadError(self, f"Dependency project is not loaded: {dep.project_name}")

        self._instance = self._loader.load(self)
        self._state = LifecycleState.LOADED
        logger.info(f"Loaded project: {self._name}")
        if self._listener is not None:
            self._listener.on_load(self)

    def unload(
        self,
        method: UnloadMethod = UnloadMethod.EXCEPTION_ON_LOADED_DEPENDENTS,
        handler: Optional["FeedbackHandler"] = None,
    ) -> list["Project"]:
        """
        Unload the project.

        Failures while tearing down an instance are passed to the handler (or
        logged when there is none); the project ends up unloaded regardless.

        Args:
            method: How loaded dependents are treated
            handler: Receives UnloadErrors of this project and its dependents

        Returns:
            The unloaded projects, dependents before the projects they depend
            on. Empty when the project was not loaded.

        Raises:
            UnloadError: With EXCEPTION_ON_LOADED_DEPENDENTS, if loaded
                projects depend on this one
        """
        if not self.is_loaded:
            return []

        unloaded: list[Project] = []
        if method is not UnloadMethod.IGNORE_DEPENDENTS:
            dependents = sorted(self._registry.get_loaded_dependents(self), key=lambda p: p.name)
            if dependents and method is UnloadMethod.EXCEPTION_ON_LOADED_DEPENDENTS:
                raise UnloadError(
                    self,
                    f"Project cannot be unloaded while projects depending on it are loaded."
                    f" Depending project{'' if len(dependents) == 1 else 's'}: {join_names(dependents)}.",
                )
            for dependent in dependents:
                unloaded.extend(dependent.unload(UnloadMethod.UNLOAD_DEPENDENTS, handler))

        instance = self._instance
        try:
            self._loader.unload(self, instance)
        except UnloadError as e:
            if handler is not None:
                handler.handle_unload_error(e)
            else:
                logger.warning(f"Unload of project {self._name} reported an error: {e}")
        finally:
            self._instance = None
            self._state = LifecycleState.UNLOADED

        logger.info(f"Unloaded project: {self._name}")
        if self._listener is not None:
            self._listener.on_unload(self)
        unloaded.append(self)
        return unloaded

    def __repr__(self) -> str:
        return f"Project(name={self._name}, state={self._state.value}, binary={self._binary_state.value})"
