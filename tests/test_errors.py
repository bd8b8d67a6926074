"""Tests for hotload.errors module."""

import pytest

from hotload.errors import (
    CompileError,
    ConfigError,
    ConsistencyError,
    CycleError,
    DependencyError,
    DependencyOrderViolation,
    HotloadError,
    LoadError,
    ProjectError,
    ResolutionError,
    SwapError,
    UnloadError,
)


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize("cls", [ConfigError, DependencyError, ConsistencyError, ProjectError])
    def test_direct_subclasses(self, cls):
        assert issubclass(cls, HotloadError)

    @pytest.mark.parametrize("cls", [
        ResolutionError, CycleError, CompileError, LoadError, UnloadError, DependencyOrderViolation,
    ])
    def test_project_errors(self, cls):
        assert issubclass(cls, ProjectError)

    def test_swap_error_is_compile_error(self):
        assert issubclass(SwapError, CompileError)

    def test_consistency_error_is_not_project_error(self):
        assert not issubclass(ConsistencyError, ProjectError)


class TestProjectError:
    """Tests for ProjectError attributes and wrapping."""

    def test_attributes(self, workspace):
        a = workspace.add("a")
        b = workspace.add("b")

        error = LoadError(b, "dependency failed", caused_by=a)

        assert str(error) == "dependency failed"
        assert error.message == "dependency failed"
        assert error.project is b
        assert error.project_name == "b"
        assert error.caused_by is a
        assert error.cause is None

    def test_general_error_has_no_project_name(self):
        assert CompileError(None, "general").project_name is None

    def test_wrap_keeps_project_and_root(self, workspace):
        a = workspace.add("a")
        b = workspace.add("b")
        cycle = CycleError(b, "cycle", caused_by=a)

        wrapped = CompileError.wrap(cycle)

        assert isinstance(wrapped, CompileError)
        assert wrapped.cause is cycle
        assert wrapped.project is b
        assert wrapped.caused_by is a
        assert str(wrapped) == "cycle"
