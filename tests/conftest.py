"""Shared fixtures: a projects directory with in-memory compiler and loader fakes.

Manifests are real project.yaml files on disk, so the bin/ and bin_new/
handling of the orchestrator is exercised for real. Only compiling and
loading are faked.
"""

import shutil
from pathlib import Path

import pytest
import yaml

from hotload.backends.base import Compiler, Loader
from hotload.errors import CompileError, LoadError, UnloadError
from hotload.instance import ProjectInstance
from hotload.manifest import ManifestDependencyResolver
from hotload.orchestrator import BatchOrchestrator
from hotload.registry import ProjectRegistry
from hotload.store import DirectoryProjectStore


class FakeCompiler(Compiler):
    """Copies src/ to the output directory; fails for names in `fail`."""

    def __init__(self):
        self.fail: set[str] = set()
        self.compiled: list[str] = []

    def compile(self, project, feedback=None):
        self.compiled.append(project.name)
        if project.name in self.fail:
            raise CompileError(project, f"Compilation failed for project {project.name}")
        if not project.src_dir.is_dir():
            raise CompileError(project, f"Source directory does not exist for project {project.name}")
        out = project.output_dir
        if out.exists():
            shutil.rmtree(out)
        shutil.copytree(project.src_dir, out)
        if feedback is not None:
            feedback.handle_compiler_feedback(f"[{project.name}] compiled")


class FakeLoader(Loader):
    """Records load / unload calls in order."""

    def __init__(self):
        self.fail_load: set[str] = set()
        self.fail_unload: set[str] = set()
        self.events: list[tuple[str, str]] = []

    def load(self, project):
        if project.name in self.fail_load:
            raise LoadError(project, f"Loader failed for project {project.name}")
        self.events.append(("load", project.name))
        instance = ProjectInstance()
        instance.project = project
        return instance

    def unload(self, project, instance):
        self.events.append(("unload", project.name))
        if project.name in self.fail_unload:
            raise UnloadError(project, f"Teardown failed for project {project.name}")

    @property
    def loaded(self) -> list[str]:
        return [name for event, name in self.events if event == "load"]

    @property
    def unloaded(self) -> list[str]:
        return [name for event, name in self.events if event == "unload"]


def write_manifest(directory: Path, dependencies=(), main=None):
    directory.mkdir(parents=True, exist_ok=True)
    data = {"dependencies": [{"project": d} for d in dependencies]}
    if main is not None:
        data["main"] = main
    with open(directory / "project.yaml", "w") as f:
        yaml.safe_dump(data, f)


class Workspace:
    """A projects directory plus a registry and orchestrator over it."""

    def __init__(self, root: Path):
        self.root = root
        self.compiler = FakeCompiler()
        self.loader = FakeLoader()
        self.registry = ProjectRegistry(
            resolver=ManifestDependencyResolver(),
            compiler=self.compiler,
            loader=self.loader,
            store=DirectoryProjectStore(root),
        )
        self.orchestrator = BatchOrchestrator(self.registry)

    def write_project(self, name, dependencies=(), compiled=True, compiled_dependencies=None) -> Path:
        """Create a project directory without registering it."""
        project_dir = self.root / name
        write_manifest(project_dir / "src", dependencies)
        if compiled:
            deps = dependencies if compiled_dependencies is None else compiled_dependencies
            write_manifest(project_dir / "bin", deps)
        return project_dir

    def add(self, name, dependencies=(), compiled=True, compiled_dependencies=None):
        """Create and register a project."""
        project_dir = self.write_project(name, dependencies, compiled, compiled_dependencies)
        return self.registry.create_project(name, project_dir)

    def project(self, name):
        return self.registry.get_project(name)

    def names(self, projects):
        return sorted(p.name for p in projects)


@pytest.fixture
def workspace(tmp_path):
    projects_dir = tmp_path / "projects"
    projects_dir.mkdir()
    return Workspace(projects_dir)
