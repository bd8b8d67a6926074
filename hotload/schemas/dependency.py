"""
Dependency schema - what a project declares it needs.

A declaration is either an opaque external reference (a library, a system
package, anything hotload does not manage) or a reference to another project
by name. Project references are resolved against a registry; resolution
records both the target project (None when no such project exists) and the
registry it was looked up in.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from hotload.project import Project
    from hotload.registry import ProjectRegistry


@dataclass(frozen=True)
class ExternalDependency:
    """A dependency hotload does not manage."""
    reference: str

    def to_dict(self) -> dict[str, Any]:
        return {"external": self.reference}


@dataclass
class ProjectDependency:
    """
    A dependency on another project.

    Attributes:
        project_name: Name of the referenced project
        registry: Registry the reference was resolved against (None until resolved)
        project: The resolved target, None when unresolved or unknown
    """
    project_name: str
    registry: Optional["ProjectRegistry"] = field(default=None, repr=False, compare=False)
    project: Optional["Project"] = field(default=None, repr=False, compare=False)

    @property
    def is_resolved(self) -> bool:
        return self.registry is not None

    def resolve(self, registry: "ProjectRegistry") -> "ProjectDependency":
        """Bind this reference to the project of that name in the given registry."""
        self.registry = registry
        self.project = registry.get_project(self.project_name)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"project": self.project_name}


Dependency = ExternalDependency | ProjectDependency


def parse_dependency(entry: Any) -> Dependency:
    """
    Parse a single manifest entry into a Dependency.

    Accepted forms:
        {"project": "name"}      project dependency
        {"external": "ref"}      external dependency
        "project:name"           project dependency
        "external:ref"           external dependency

    Raises:
        ValueError: If the entry has none of the forms above
    """
    if isinstance(entry, dict):
        if len(entry) != 1:
            raise ValueError(f"Dependency entry must have exactly one key: {entry}")
        kind, value = next(iter(entry.items()))
    elif isinstance(entry, str) and ":" in entry:
        kind, value = entry.split(":", 1)
    else:
        raise ValueError(f"Invalid dependency entry: {entry!r}")

    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Dependency entry has an empty or non-string value: {entry!r}")
    value = value.strip()

    kind = str(kind).strip().lower()
    if kind == "project":
        return ProjectDependency(project_name=value)
    if kind == "external":
        return ExternalDependency(reference=value)
    raise ValueError(f"Unknown dependency type '{kind}' in entry: {entry!r}")
