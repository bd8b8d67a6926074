"""Tests for hotload.backends.python - real byte-compilation and imports.

Every test uses its own package names so sys.modules never leaks modules
between tests.
"""

import sys
import uuid

import pytest
import yaml

from hotload.backends import PythonCompiler, PythonLoader
from hotload.errors import CompileError, LoadError, UnloadError
from hotload.handlers import CollectingFeedbackHandler
from hotload.manifest import ManifestDependencyResolver
from hotload.orchestrator import BatchOrchestrator
from hotload.registry import ProjectRegistry
from hotload.store import DirectoryProjectStore


PLUGIN_SOURCE = '''
from hotload.instance import ProjectInstance

EVENTS = []


class Plugin(ProjectInstance):
    greeting = {greeting!r}

    def on_load(self):
        EVENTS.append("load")

    def on_unload(self):
        EVENTS.append("unload")
'''


@pytest.fixture
def python_workspace(tmp_path):
    projects_dir = tmp_path / "projects"
    projects_dir.mkdir()
    registry = ProjectRegistry(
        resolver=ManifestDependencyResolver(),
        compiler=PythonCompiler(),
        loader=PythonLoader(),
        store=DirectoryProjectStore(projects_dir),
    )
    yield projects_dir, registry
    for project in registry.get_projects():
        if project.is_loaded:
            project.unload()


def _write_plugin(projects_dir, name, greeting="hello", source=None, main=None, dependencies=(), package=None):
    package = package or f"pkg_{uuid.uuid4().hex[:12]}"
    src = projects_dir / name / "src"
    (src / package).mkdir(parents=True, exist_ok=True)
    (src / package / "__init__.py").write_text("")
    (src / package / "plugin.py").write_text(source or PLUGIN_SOURCE.format(greeting=greeting))
    (src / package / "data.txt").write_text("resource")
    manifest = {
        "main": main or f"{package}.plugin:Plugin",
        "dependencies": [{"project": d} for d in dependencies],
    }
    with open(src / "project.yaml", "w") as f:
        yaml.safe_dump(manifest, f)
    return package


class TestPythonCompiler:
    """Tests for byte-compiling a project's sources."""

    def test_compiles_to_sourceless_pyc(self, python_workspace):
        projects_dir, registry = python_workspace
        package = _write_plugin(projects_dir, "a")
        project = registry.add_project_from_store("a")
        feedback = CollectingFeedbackHandler()

        project.compile(feedback)

        assert (project.bin_dir / package / "plugin.pyc").is_file()
        assert (project.bin_dir / package / "__init__.pyc").is_file()
        assert not list(project.bin_dir.rglob("*.py"))
        assert (project.bin_dir / package / "data.txt").read_text() == "resource"
        assert (project.bin_dir / "project.yaml").is_file()
        assert feedback.compiler_feedback == ["[a] Compiled 2 files."]

    def test_syntax_error_fails_and_leaves_nothing(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "a", source="def broken(:\n")
        project = registry.add_project_from_store("a")
        project.begin_pending()
        feedback = CollectingFeedbackHandler()

        with pytest.raises(CompileError, match="1 file with errors"):
            project.compile(feedback)

        assert not project.pending_bin_dir.exists()
        assert len(feedback.compiler_feedback) == 1
        assert feedback.compiler_feedback[0].startswith("[a] ")

    def test_missing_sources(self, python_workspace):
        projects_dir, registry = python_workspace
        (projects_dir / "empty").mkdir()
        project = registry.add_project_from_store("empty")

        with pytest.raises(CompileError, match="Source directory does not exist"):
            project.compile()


class TestPythonLoader:
    """Tests for importing and discarding compiled projects."""

    def test_load_and_unload(self, python_workspace):
        projects_dir, registry = python_workspace
        package = _write_plugin(projects_dir, "a", greeting="hi")
        project = registry.add_project_from_store("a")
        project.compile()

        project.load()

        module = sys.modules[f"{package}.plugin"]
        assert project.instance.greeting == "hi"
        assert project.instance.name == "a"
        assert module.EVENTS == ["load"]
        assert str(project.bin_dir) in sys.path

        project.unload()

        assert module.EVENTS == ["load", "unload"]
        assert f"{package}.plugin" not in sys.modules
        assert str(project.bin_dir) not in sys.path

    def test_recompile_picks_up_new_code(self, python_workspace):
        projects_dir, registry = python_workspace
        package = _write_plugin(projects_dir, "a", greeting="old")
        project = registry.add_project_from_store("a")
        orchestrator = BatchOrchestrator(registry)
        orchestrator.recompile(project)
        assert project.instance.greeting == "old"

        plugin = projects_dir / "a" / "src" / package / "plugin.py"
        plugin.write_text(PLUGIN_SOURCE.format(greeting="new"))
        orchestrator.recompile(project)

        assert project.instance.greeting == "new"
        assert not project.pending_bin_dir.exists()

    def test_missing_binaries(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "a")
        project = registry.add_project_from_store("a")

        with pytest.raises(LoadError, match="Binary directory does not exist"):
            project.load()

    def test_missing_entry_point(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "a", main="no_colon_here")
        project = registry.add_project_from_store("a")
        project.compile()

        with pytest.raises(LoadError, match="valid entry point"):
            project.load()

    def test_entry_point_must_be_project_instance(self, python_workspace):
        projects_dir, registry = python_workspace
        package = _write_plugin(projects_dir, "a", source="class Plugin:\n    pass\n")
        project = registry.add_project_from_store("a")
        project.compile()

        with pytest.raises(LoadError, match="not a ProjectInstance"):
            project.load()

        assert str(project.bin_dir) not in sys.path
        assert f"{package}.plugin" not in sys.modules

    def test_import_error_is_load_error(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "a", source="import module_that_does_not_exist_hl\n")
        project = registry.add_project_from_store("a")
        project.compile()

        with pytest.raises(LoadError, match="Failed to load entry point"):
            project.load()
        assert not project.is_loaded

    def test_failing_on_unload_is_reported(self, python_workspace):
        projects_dir, registry = python_workspace
        source = (
            "from hotload.instance import ProjectInstance\n\n"
            "class Plugin(ProjectInstance):\n"
            "    def on_unload(self):\n"
            "        raise RuntimeError('boom')\n"
        )
        _write_plugin(projects_dir, "a", source=source)
        project = registry.add_project_from_store("a")
        project.compile()
        project.load()
        handler = CollectingFeedbackHandler()

        project.unload(handler=handler)

        assert not project.is_loaded
        assert len(handler.unload_errors) == 1
        assert isinstance(handler.unload_errors[0], UnloadError)
        assert "boom" in str(handler.unload_errors[0])

    def test_dependent_reaches_dependency_instance(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "core", greeting="from core")
        _write_plugin(projects_dir, "app", dependencies=["core"])
        registry.add_projects_from_store()
        handler = CollectingFeedbackHandler()

        result = BatchOrchestrator(registry).recompile_all(handler)

        assert handler.errors == []
        assert sorted(p.name for p in result.loaded) == ["app", "core"]
        app = registry.get_project("app")
        assert app.instance.get_dependency("core").greeting == "from core"


class TestPackageConflicts:
    """Tests for projects that ship a package with the same name."""

    def test_second_project_is_rejected(self, python_workspace):
        projects_dir, registry = python_workspace
        package = f"shared_{uuid.uuid4().hex[:12]}"
        _write_plugin(projects_dir, "a", greeting="from a", package=package)
        _write_plugin(projects_dir, "b", greeting="from b", package=package)
        registry.add_projects_from_store()
        a = registry.get_project("a")
        b = registry.get_project("b")
        a.compile()
        b.compile()
        a.load()

        with pytest.raises(LoadError, match=f"Package {package} of project b is already imported by project a"):
            b.load()

        assert not b.is_loaded
        assert str(b.bin_dir) not in sys.path
        assert a.instance.greeting == "from a"

    def test_loads_once_the_other_project_is_unloaded(self, python_workspace):
        projects_dir, registry = python_workspace
        package = f"shared_{uuid.uuid4().hex[:12]}"
        _write_plugin(projects_dir, "a", greeting="from a", package=package)
        _write_plugin(projects_dir, "b", greeting="from b", package=package)
        registry.add_projects_from_store()
        a = registry.get_project("a")
        b = registry.get_project("b")
        a.compile()
        b.compile()
        a.load()
        a.unload()

        b.load()

        assert b.instance.greeting == "from b"

    def test_recompile_all_reports_the_conflict(self, python_workspace):
        projects_dir, registry = python_workspace
        package = f"shared_{uuid.uuid4().hex[:12]}"
        _write_plugin(projects_dir, "a", greeting="from a", package=package)
        _write_plugin(projects_dir, "b", greeting="from b", package=package)
        registry.add_projects_from_store()
        handler = CollectingFeedbackHandler()

        result = BatchOrchestrator(registry).recompile_all(handler)

        assert sorted(p.name for p in result.loaded) == ["a"]
        assert sorted(p.name for p in result.errors) == ["b"]
        assert [str(e) for e in handler.errors_for("b")] == [
            f"Package {package} of project b is already imported by project a."
        ]
        assert registry.get_project("a").instance.greeting == "from a"

    def test_package_shadowing_an_imported_module(self, python_workspace):
        projects_dir, registry = python_workspace
        _write_plugin(projects_dir, "a", package="collections")
        project = registry.add_project_from_store("a")
        project.compile()

        with pytest.raises(LoadError, match="Package collections of project a is already imported from"):
            project.load()

        assert str(project.bin_dir) not in sys.path
