"""
hotload - Dependency-aware compiler and hot loader for a directory of projects.

Compiles projects into side directories, swaps the binaries in and loads
them in dependency order. One failing project never takes the others down.
"""

__version__ = "0.1.0"


__all__ = [
    "BatchOrchestrator",
    "HotloadConfig",
    "Project",
    "ProjectInstance",
    "ProjectRegistry",
    "get_hotload_home",
    "load_config",
]

from .config import HotloadConfig, get_hotload_home, load_config
from .instance import ProjectInstance
from .orchestrator import BatchOrchestrator
from .project import Project
from .registry import ProjectRegistry
