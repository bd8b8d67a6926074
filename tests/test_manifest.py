"""Tests for hotload.manifest and dependency parsing."""

import pytest

from hotload.errors import DependencyError
from hotload.manifest import ManifestDependencyResolver, read_manifest
from hotload.schemas import ExternalDependency, ProjectDependency, parse_dependency


class TestParseDependency:
    """Tests for the accepted manifest entry forms."""

    def test_mapping_forms(self):
        assert parse_dependency({"project": "core"}) == ProjectDependency("core")
        assert parse_dependency({"external": "requests>=2"}) == ExternalDependency("requests>=2")

    def test_string_forms(self):
        assert parse_dependency("project:core") == ProjectDependency("core")
        assert parse_dependency("external: requests") == ExternalDependency("requests")

    @pytest.mark.parametrize("entry", [
        "core",
        {"project": "a", "external": "b"},
        {"project": ""},
        {"plugin": "x"},
        42,
    ])
    def test_invalid_entries(self, entry):
        with pytest.raises(ValueError):
            parse_dependency(entry)

    def test_project_dependency_resolves_lazily(self, workspace):
        a = workspace.add("a")
        dep = ProjectDependency("a")
        assert not dep.is_resolved

        dep.resolve(workspace.registry)

        assert dep.is_resolved
        assert dep.project is a
        assert dep.to_dict() == {"project": "a"}

    def test_unknown_project_resolves_to_none(self, workspace):
        dep = ProjectDependency("ghost").resolve(workspace.registry)
        assert dep.is_resolved
        assert dep.project is None


class TestReadManifest:
    """Tests for manifest file loading."""

    def test_missing_file_is_empty(self, tmp_path):
        assert read_manifest(tmp_path / "project.yaml") == {}

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "project.yaml"
        path.write_text("")
        assert read_manifest(path) == {}

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "project.yaml"
        path.write_text("dependencies: [")
        with pytest.raises(DependencyError, match="Invalid YAML syntax"):
            read_manifest(path)

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "project.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(DependencyError, match="must be a mapping"):
            read_manifest(path)


class TestManifestDependencyResolver:
    """Tests for reading source vs compiled dependencies."""

    def test_source_and_compiled_can_differ(self, workspace):
        workspace.add("a")
        workspace.add("b")
        c = workspace.add("c", ["a", "b"], compiled_dependencies=["a"])
        resolver = ManifestDependencyResolver()

        assert [d.project_name for d in resolver.source_dependencies(c)] == ["a", "b"]
        assert [d.project_name for d in resolver.compiled_dependencies(c)] == ["a"]

    def test_uncompiled_project_has_no_compiled_dependencies(self, workspace):
        a = workspace.add("a", ["b"], compiled=False)
        assert ManifestDependencyResolver().compiled_dependencies(a) == []

    def test_dependencies_must_be_a_list(self, workspace):
        a = workspace.add("a")
        (a.src_dir / "project.yaml").write_text("dependencies: core\n")

        with pytest.raises(DependencyError, match="must be a list"):
            ManifestDependencyResolver().source_dependencies(a)

    def test_invalid_entry_names_file(self, workspace):
        a = workspace.add("a")
        (a.src_dir / "project.yaml").write_text("dependencies:\n  - bogus\n")

        with pytest.raises(DependencyError, match="Invalid dependency in"):
            ManifestDependencyResolver().source_dependencies(a)

    def test_custom_manifest_name(self, workspace):
        a = workspace.add("a")
        (a.src_dir / "hotload.yaml").write_text("dependencies:\n  - project:z\n")
        resolver = ManifestDependencyResolver("hotload.yaml")

        assert resolver.manifest_name == "hotload.yaml"
        assert resolver.source_dependencies(a) == [ProjectDependency("z")]
