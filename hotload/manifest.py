"""
Project manifest and dependency resolution.

Every project declares its entry point and dependencies in a project.yaml
manifest at the root of its src/ tree:

    main: myplugin.plugin:Plugin
    dependencies:
      - project: core-utils
      - external: requests>=2
      - project:other-project

The compiler copies the manifest into the binary directory, so the
dependencies of the compiled project can differ from the ones currently
declared in the source tree. Both can be read:
- source_dependencies(): what the next compile will produce
- compiled_dependencies(): what the binaries that get loaded were built with

A missing manifest declares no dependencies.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, TYPE_CHECKING

import yaml

from hotload.errors import DependencyError
from hotload.schemas import Dependency, parse_dependency

if TYPE_CHECKING:
    from hotload.project import Project


MANIFEST_NAME = "project.yaml"


def read_manifest(path: Path) -> dict[str, Any]:
    """
    Load a manifest file.

    Returns:
        The parsed manifest, an empty dict if the file does not exist

    Raises:
        DependencyError: If the file cannot be read or is not a YAML mapping
    """
    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DependencyError(f"Invalid YAML syntax in {path}: {e}")
    except OSError as e:
        raise DependencyError(f"Failed to read {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DependencyError(f"Manifest must be a mapping: {path}")
    return data


class DependencyResolver(ABC):
    """Abstract base class for reading a project's declared dependencies."""

    @abstractmethod
    def source_dependencies(self, project: "Project") -> list[Dependency]:
        """
        Dependencies currently declared in the project's source tree.

        Raises:
            DependencyError: If the declaration cannot be read or parsed
        """
        pass

    @abstractmethod
    def compiled_dependencies(self, project: "Project") -> list[Dependency]:
        """
        Dependencies the project's current binaries were compiled with.

        Raises:
            DependencyError: If the declaration cannot be read or parsed
        """
        pass


class ManifestDependencyResolver(DependencyResolver):
    """Reads dependencies from project.yaml in src/ or bin/."""

    def __init__(self, manifest_name: str = MANIFEST_NAME):
        self._manifest_name = manifest_name

    @property
    def manifest_name(self) -> str:
        return self._manifest_name

    def source_dependencies(self, project: "Project") -> list[Dependency]:
        return self._read(project.src_dir / self._manifest_name)

    def compiled_dependencies(self, project: "Project") -> list[Dependency]:
        return self._read(project.bin_dir / self._manifest_name)

    def _read(self, path: Path) -> list[Dependency]:
        manifest = read_manifest(path)
        entries = manifest.get("dependencies")
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise DependencyError(f"'dependencies' must be a list in {path}")

        dependencies: list[Dependency] = []
        for entry in entries:
            try:
                dependencies.append(parse_dependency(entry))
            except ValueError as e:
                raise DependencyError(f"Invalid dependency in {path}: {e}")
        return dependencies
