"""
BatchOrchestrator - dependency-ordered batch operations over a registry.

Batch operations:
- load_all: load every unloaded, enabled project, dependencies first
- unload_all: unload every loaded project, dependents first
- recompile_all: compile everything into side directories, unload
  everything, swap the new binaries in and load everything again

Failure handling:
Per-project failures never abort a batch. They are reported to the feedback
handler and the failed project is pruned from the traversal together with
everything that depends on it. Each pruned dependent gets its own error that
names the project that caused it.

Cycles are detected before traversal. Members of a cycle, and everything
depending on a cycle, are marked as errors up front. A project depending on
itself is reported separately and pruned during traversal.

Single-project operations (recompile, load, unload) raise instead of
reporting.
"""

import logging
from collections.abc import Callable
from typing import Optional, Union

from hotload.errors import (
    CompileError,
    ConsistencyError,
    CycleError,
    LoadError,
    UnloadError,
)
from hotload.graph import DependencyGraph
from hotload.graph_builder import GraphBuilder
from hotload.handlers import FeedbackHandler, LoggingFeedbackHandler
from hotload.project import Project
from hotload.recompile import RecompileTransaction
from hotload.registry import ProjectRegistry
from hotload.schemas import (
    BinaryState,
    LoadAllResult,
    RecompileAllResult,
    UnloadMethod,
)
from hotload.utils import join_names

logger = logging.getLogger(__name__)


def find_cycles(graph: DependencyGraph[Project]) -> list[set[Project]]:
    """
    Get all cycles in the graph as sets of projects.

    Projects that depend on themselves are returned as singleton cycles.
    """
    cycles = []
    for component in graph.get_strongly_connected_components():
        if len(component) == 1:
            (node,) = component
            if not graph.has_directed_edge(node, node):
                continue
        cycles.append(component)
    return cycles


def _by_name(projects) -> list[Project]:
    return sorted(projects, key=lambda p: p.name)


class BatchOrchestrator:
    """
    Drives batch lifecycle operations over one registry.

    Operations are sequential. Callers must not run two operations against
    the same registry at the same time.

    Usage:
        orchestrator = BatchOrchestrator(registry)
        handler = CollectingFeedbackHandler()
        result = orchestrator.recompile_all(handler)
        for error in handler.errors:
            print(error)
    """

    def __init__(self, registry: ProjectRegistry):
        self._registry = registry
        self._graph_builder = GraphBuilder(registry)

    @property
    def registry(self) -> ProjectRegistry:
        return self._registry

    # -- shared steps --------------------------------------------------------

    @staticmethod
    def _mark_cycles(
        graph: DependencyGraph[Project],
        errors: set[Project],
        report: Callable[[CycleError], None],
    ) -> None:
        """Report cycle members and projects depending on a cycle, and mark them."""
        cycles = find_cycles(graph)
        for cycle in cycles:
            if len(cycle) > 1:
                names = join_names(cycle)
                for project in _by_name(cycle):
                    report(CycleError(project, f"Circular dependency detected including projects: {names}."))
                    errors.add(project)
            else:
                (project,) = cycle
                report(CycleError(project, f"Project depends on itself (circular dependency): {project.name}."))
                errors.add(project)

        # These never become ready in the traversal; report them now, once each.
        for cycle in cycles:
            if len(cycle) == 1:
                continue
            names = join_names(cycle)
            ancestors = graph.get_ancestors(next(iter(cycle))) - errors
            for project in _by_name(ancestors):
                report(CycleError(
                    project,
                    f"Project depends directly or indirectly on (but is not part of)"
                    f" a circular dependency including projects: {names}.",
                ))
                errors.add(project)

    @staticmethod
    def _traverse(
        graph: DependencyGraph[Project],
        errors: set[Project],
        attempt: Callable[[Project], bool],
        report_dependent: Callable[[Project, Project], None],
    ) -> None:
        """
        Walk dependencies-first, pruning everything above a failed project.

        Args:
            graph: The graph to walk
            errors: Projects already failed; extended with new failures
            attempt: Performs the step for a project, returns success
            report_dependent: Called as (dependent, root) for every project
                pruned because of a failed root
        """
        it = graph.child_before_parent_iterator()
        for project in it:
            failed = project in errors
            if not failed and not attempt(project):
                failed = True
                errors.add(project)

            if failed:
                removed = it.remove_ancestors()
                if not removed or removed[0] is not project:
                    raise ConsistencyError(
                        f"Traversal pruned from an unexpected project while removing the dependents of {project.name}."
                    )
                for dependent in removed[1:]:
                    report_dependent(dependent, project)
                    errors.add(dependent)

        stuck = [p for p in it.remaining if p not in errors]
        if stuck:
            raise ConsistencyError(
                f"Projects were never reached during traversal: {join_names(stuck)}."
            )

    # -- load-all ------------------------------------------------------------

    def load_all(self, handler: Optional[FeedbackHandler] = None) -> LoadAllResult:
        """
        Load all projects that are neither loaded nor disabled.

        Args:
            handler: Receives a LoadError for every project that failed

        Returns:
            The loaded projects and the error projects (disjoint)
        """
        handler = handler or LoggingFeedbackHandler()
        projects = _by_name(
            p for p in self._registry.get_projects() if not p.is_loaded and not p.disabled
        )
        logger.info(f"Loading {len(projects)} project(s)")

        result = self._graph_builder.build(projects, use_source_dependencies=False)
        graph = result.graph
        errors: set[Project] = set()
        for error in result.errors:
            if error.project is not None:
                errors.add(error.project)
            handler.handle_load_error(LoadError.wrap(error))

        self._mark_cycles(graph, errors, lambda e: handler.handle_load_error(LoadError.wrap(e)))

        loaded: set[Project] = set()

        def attempt(project: Project) -> bool:
            try:
                project.load()
            except LoadError as e:
                handler.handle_load_error(e)
                return False
            loaded.add(project)
            return True

        def report_dependent(dependent: Project, root: Project) -> None:
            handler.handle_load_error(LoadError(
                dependent,
                f"Indirect or direct dependency project could not be loaded: {root.name}",
                caused_by=root,
            ))

        self._traverse(graph, errors, attempt, report_dependent)

        logger.info(f"Load-all finished: {len(loaded)} loaded, {len(errors)} failed")
        return LoadAllResult(loaded=loaded, errors=errors)

    # -- unload-all ----------------------------------------------------------

    def unload_all(self, handler: Optional[FeedbackHandler] = None) -> set[Project]:
        """
        Unload all loaded projects, dependents before their dependencies.

        Args:
            handler: Receives UnloadErrors; resolution problems are reported
                but do not block unloading

        Returns:
            The unloaded projects

        Raises:
            ConsistencyError: If the loaded projects contain a cycle
        """
        handler = handler or LoggingFeedbackHandler()
        projects = _by_name(p for p in self._registry.get_projects() if p.is_loaded)
        logger.info(f"Unloading {len(projects)} project(s)")

        result = self._graph_builder.build(projects, use_source_dependencies=False)
        graph = result.graph
        for error in result.errors:
            handler.handle_unload_error(UnloadError.wrap(error))

        # load_all never loads a project on a cycle, so loaded projects are acyclic.
        cycles = find_cycles(graph)
        if cycles:
            raise ConsistencyError(
                f"Loaded projects contain a circular dependency: {join_names(cycles[0])}."
            )

        unloaded: set[Project] = set()
        for project in graph.parent_before_child_iterator():
            # Dependents were unloaded earlier in this walk.
            project.unload(UnloadMethod.IGNORE_DEPENDENTS, handler)
            unloaded.add(project)

        logger.info(f"Unload-all finished: {len(unloaded)} unloaded")
        return unloaded

    # -- recompile-all -------------------------------------------------------

    def recompile_all(self, handler: Optional[FeedbackHandler] = None) -> RecompileAllResult:
        """
        Recompile, unload and load all enabled projects.

        New project directories are registered first and projects whose
        directory was deleted are removed. A project that fails to compile
        keeps its old binaries and is loaded from those if possible, but it is
        still reported as an error.

        Args:
            handler: Receives compile, unload and load errors and compiler
                feedback

        Returns:
            The added, removed, compiled, unloaded, loaded and error projects.
            Loaded and error projects are disjoint.

        Raises:
            ConsistencyError: If a project has a pending binary directory
                before or after the operation
        """
        handler = handler or LoggingFeedbackHandler()

        added = self._registry.add_projects_from_store()
        projects = _by_name(p for p in self._registry.get_projects() if not p.disabled)
        logger.info(f"Recompiling {len(projects)} project(s)")

        for project in projects:
            if project.binary_state is not BinaryState.STABLE:
                raise ConsistencyError(
                    f"All projects are expected to have a stable binary directory, but project"
                    f" \"{project.name}\" has a pending binary directory: {project.pending_bin_dir}."
                )

        # Source dependencies, so edits to a manifest order this batch correctly.
        result = self._graph_builder.build(projects, use_source_dependencies=True)
        graph = result.graph
        errors: set[Project] = set()
        for error in result.errors:
            if error.project is not None:
                errors.add(error.project)
            handler.handle_compile_error(CompileError.wrap(error))

        self._mark_cycles(graph, errors, lambda e: handler.handle_compile_error(CompileError.wrap(e)))

        compiled: set[Project] = set()

        def attempt(project: Project) -> bool:
            project.begin_pending()
            try:
                project.compile(handler)
            except CompileError as e:
                project.discard_pending()
                handler.handle_compile_error(e)
                return False
            compiled.add(project)
            return True

        def report_dependent(dependent: Project, root: Project) -> None:
            handler.handle_compile_error(CompileError(
                dependent,
                f"Indirect or direct dependency project was not successfully compiled: {root.name}",
                caused_by=root,
            ))

        self._traverse(graph, errors, attempt, report_dependent)

        # Nothing may keep running old code once binaries start moving.
        unloaded = self.unload_all(handler)
        removed = self._registry.remove_unloaded_projects_if_deleted()

        for project in projects:
            if project in errors:
                continue
            if project.binary_state is not BinaryState.PENDING:
                handler.handle_compile_error(CompileError(
                    project,
                    f"Project \"{project.name}\" compiled without a pending binary directory;"
                    f" its binaries were not replaced.",
                ))
                errors.add(project)
                continue
            try:
                project.commit_pending()
            except CompileError as e:
                handler.handle_compile_error(e)
                errors.add(project)

        for project in projects:
            if project.binary_state is not BinaryState.STABLE:
                raise ConsistencyError(
                    f"All projects are known to have a stable binary directory at this point,"
                    f" yet project \"{project.name}\" has a pending binary directory."
                )

        # Projects that failed to compile may still load from their old binaries.
        load_result = self.load_all(handler)
        errors |= load_result.errors
        loaded = load_result.loaded - errors

        logger.info(
            f"Recompile-all finished: {len(compiled)} compiled, {len(loaded)} loaded,"
            f" {len(errors)} failed, {len(added)} added, {len(removed)} removed"
        )
        return RecompileAllResult(
            added=added,
            removed=removed,
            compiled=compiled,
            unloaded=unloaded,
            loaded=loaded,
            errors=errors,
        )

    # -- single-project operations -------------------------------------------

    def _lookup(self, project: Union[Project, str]) -> Project:
        if isinstance(project, Project):
            return project
        found = self._registry.get_project(project)
        if found is None:
            raise KeyError(f"Unknown project: {project}")
        return found

    def recompile(
        self,
        project: Union[Project, str],
        feedback: Optional[FeedbackHandler] = None,
        unload_handler: Optional[FeedbackHandler] = None,
    ) -> None:
        """
        Compile, unload (if loaded) and load a single project.

        See RecompileTransaction.run for the guarantees on failure.
        """
        RecompileTransaction(self._registry).run(self._lookup(project), feedback, unload_handler)

    def load(self, project: Union[Project, str]) -> Project:
        """
        Load a single project.

        Raises:
            KeyError: If no project has the given name
            LoadError: If the project cannot be loaded
        """
        target = self._lookup(project)
        target.load()
        return target

    def unload(
        self,
        project: Union[Project, str],
        method: UnloadMethod = UnloadMethod.EXCEPTION_ON_LOADED_DEPENDENTS,
        handler: Optional[FeedbackHandler] = None,
    ) -> list[Project]:
        """
        Unload a single project.

        Returns:
            The unloaded projects, dependents first

        Raises:
            KeyError: If no project has the given name
            UnloadError: If dependents are loaded and method forbids that
        """
        return self._lookup(project).unload(method, handler)


__all__ = ["BatchOrchestrator", "find_cycles"]
