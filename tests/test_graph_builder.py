"""Tests for hotload.graph_builder module."""

import pytest

from hotload.errors import ResolutionError
from hotload.graph_builder import GraphBuilder
from hotload.manifest import ManifestDependencyResolver
from hotload.registry import ProjectRegistry


class TestGraphBuilder:
    """Tests for building graphs from compiled and source dependencies."""

    def test_edges_follow_compiled_dependencies(self, workspace):
        a = workspace.add("a")
        b = workspace.add("b", ["a"])
        c = workspace.add("c", ["a", "b"])

        result = GraphBuilder(workspace.registry).build([a, b, c])

        assert result.errors == []
        assert result.graph.has_directed_edge(b, a)
        assert result.graph.has_directed_edge(c, a)
        assert result.graph.has_directed_edge(c, b)
        assert not result.graph.has_directed_edge(a, b)

    def test_source_dependencies_are_used_when_requested(self, workspace):
        a = workspace.add("a")
        b = workspace.add("b", ["a"], compiled_dependencies=[])

        compiled = GraphBuilder(workspace.registry).build([a, b])
        source = GraphBuilder(workspace.registry).build([a, b], use_source_dependencies=True)

        assert not compiled.graph.has_directed_edge(b, a)
        assert source.graph.has_directed_edge(b, a)

    def test_dependency_outside_subset_is_omitted(self, workspace):
        workspace.add("a")
        b = workspace.add("b", ["a"])

        result = GraphBuilder(workspace.registry).build([b])

        assert result.errors == []
        assert result.graph.nodes == [b]
        assert result.graph.get_children(b) == []

    def test_unknown_dependency_is_reported(self, workspace):
        b = workspace.add("b", ["missing"])

        result = GraphBuilder(workspace.registry).build([b])

        assert len(result.errors) == 1
        error = result.errors[0]
        assert isinstance(error, ResolutionError)
        assert error.project is b
        assert str(error) == "Dependency project does not exist in the registry: missing"

    def test_unreadable_manifest_is_reported(self, workspace):
        a = workspace.add("a")
        (a.bin_dir / "project.yaml").write_text("dependencies: [unclosed")

        result = GraphBuilder(workspace.registry).build([a])

        assert len(result.errors) == 1
        assert result.errors[0].project is a
        assert a in result.graph

    def test_dependency_of_other_registry_is_reported(self, workspace):
        a = workspace.add("a", ["b"])
        workspace.add("b")
        a.init_dependencies()
        other = ProjectRegistry(ManifestDependencyResolver(), workspace.compiler, workspace.loader)
        a.dependencies[0].registry = other

        result = GraphBuilder(workspace.registry).build([a])

        assert [str(e) for e in result.errors] == [
            "Dependency project is managed by a different registry: b"
        ]

    def test_project_of_other_registry_raises(self, workspace, tmp_path):
        other = ProjectRegistry(ManifestDependencyResolver(), workspace.compiler, workspace.loader)
        stranger = other.create_project("stranger", tmp_path / "stranger")

        with pytest.raises(ValueError):
            GraphBuilder(workspace.registry).build([stranger])

    def test_external_dependencies_add_no_edges(self, workspace):
        a = workspace.add("a")
        (a.bin_dir / "project.yaml").write_text("dependencies:\n  - external: requests>=2\n")

        result = GraphBuilder(workspace.registry).build([a])

        assert result.errors == []
        assert result.graph.get_children(a) == []

    def test_removed_and_re_added_dependency_keeps_its_edge(self, workspace):
        a = workspace.add("a")
        b = workspace.add("b", ["a"])
        GraphBuilder(workspace.registry).build([a, b])
        workspace.registry.remove_project(a)
        new_a = workspace.registry.create_project("a", a.project_dir)

        result = GraphBuilder(workspace.registry).build([new_a, b])

        assert result.errors == []
        assert result.graph.has_directed_edge(b, new_a)
