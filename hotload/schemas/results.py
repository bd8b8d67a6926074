"""
Batch operation results.

Results hold references to projects owned by the registry. They are
snapshots of one batch call and are not meant to be kept around.
"""

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from hotload.project import Project


def _names(projects: "set[Project]") -> list[str]:
    return sorted(p.name for p in projects)


@dataclass
class LoadAllResult:
    """Result of a load-all operation. The loaded and errors sets never overlap."""
    loaded: "set[Project]" = field(default_factory=set)
    errors: "set[Project]" = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "loaded": _names(self.loaded),
            "errors": _names(self.errors),
        }


@dataclass
class RecompileAllResult:
    """
    Result of a recompile-all operation.

    A project in `loaded` was (re)loaded and is not in `errors`; a project in
    `errors` failed to resolve, compile, swap or load during this call.
    Disabled projects that were skipped appear in no set.
    """
    added: "set[Project]" = field(default_factory=set)
    removed: "set[Project]" = field(default_factory=set)
    compiled: "set[Project]" = field(default_factory=set)
    unloaded: "set[Project]" = field(default_factory=set)
    loaded: "set[Project]" = field(default_factory=set)
    errors: "set[Project]" = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": _names(self.added),
            "removed": _names(self.removed),
            "compiled": _names(self.compiled),
            "unloaded": _names(self.unloaded),
            "loaded": _names(self.loaded),
            "errors": _names(self.errors),
        }
