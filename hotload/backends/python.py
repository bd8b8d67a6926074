"""
Python backends - byte-code compiler and import-based loader.

PythonCompiler compiles every .py file of a project's src/ tree into a .pyc
file at the same relative location in the output directory, and copies all
other files (the project.yaml manifest, data files) verbatim. The resulting
directory is importable without any sources.

PythonLoader puts the project's bin/ directory on sys.path, imports the entry
point named by the compiled manifest and instantiates it. Unloading calls the
instance's on_unload() hook and drops every module that was imported from
bin/ so that a later load picks up fresh binaries.

All projects share sys.modules, so a project cannot be loaded while its
top-level package name is taken by another loaded project or any other
imported module.
"""

import importlib
import logging
import py_compile
import shutil
import sys
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from hotload.backends.base import Compiler, Loader
from hotload.errors import CompileError, DependencyError, LoadError, UnloadError
from hotload.instance import ProjectInstance
from hotload.manifest import MANIFEST_NAME, read_manifest
from hotload.utils import remove_path

if TYPE_CHECKING:
    from hotload.handlers import FeedbackHandler
    from hotload.project import Project

logger = logging.getLogger(__name__)


class PythonCompiler(Compiler):
    """
    Compiles a project's sources to byte code.

    Usage:
        compiler = PythonCompiler()
        compiler.compile(project, feedback)
    """

    def __init__(self, optimize: int = -1):
        """
        Args:
            optimize: Optimization level passed to py_compile (-1 = interpreter's)
        """
        self._optimize = optimize

    def compile(self, project: "Project", feedback: Optional["FeedbackHandler"] = None) -> None:
        src_dir = project.src_dir
        out_dir = project.output_dir

        if not src_dir.is_dir():
            raise CompileError(project, f"Source directory does not exist for project {project.name}: {src_dir}")
        if out_dir.exists() and not remove_path(out_dir):
            raise CompileError(project, f"Failed to clear the output directory for project {project.name}: {out_dir}")

        compiled = 0
        failures = 0
        try:
            out_dir.mkdir(parents=True)
            for path in sorted(src_dir.rglob("*")):
                if path.is_dir() or "__pycache__" in path.parts:
                    continue
                rel = path.relative_to(src_dir)
                if path.suffix == ".py":
                    target = out_dir / rel.with_suffix(".pyc")
                    target.parent.mkdir(parents=True, exist_ok=True)
                    try:
                        py_compile.compile(
                            str(path),
                            cfile=str(target),
                            dfile=f"{project.name}/{rel.as_posix()}",
                            doraise=True,
                            optimize=self._optimize,
                            invalidation_mode=py_compile.PycInvalidationMode.UNCHECKED_HASH,
                        )
                        compiled += 1
                    except py_compile.PyCompileError as e:
                        failures += 1
                        _send_feedback(feedback, f"[{project.name}] {e.msg.strip()}")
                else:
                    target = out_dir / rel
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(path, target)
        except OSError as e:
            remove_path(out_dir)
            raise CompileError(project, f"I/O error while compiling project {project.name}: {e}") from e

        if failures:
            remove_path(out_dir)
            raise CompileError(
                project,
                f"Compilation failed for project {project.name}:"
                f" {failures} file{'' if failures == 1 else 's'} with errors.",
            )

        _send_feedback(feedback, f"[{project.name}] Compiled {compiled} file{'' if compiled == 1 else 's'}.")


def _send_feedback(feedback: Optional["FeedbackHandler"], message: str) -> None:
    if feedback is not None:
        feedback.handle_compiler_feedback(message)
    else:
        logger.debug(message)


class PythonLoader(Loader):
    """
    Imports a compiled project and creates its ProjectInstance.

    The manifest's `main` entry names the instance class as
    "package.module:ClassName".
    """

    def __init__(self, manifest_name: str = MANIFEST_NAME):
        self._manifest_name = manifest_name

    def load(self, project: "Project") -> ProjectInstance:
        bin_dir = project.bin_dir
        if not bin_dir.is_dir():
            raise LoadError(project, f"Binary directory does not exist for project {project.name}: {bin_dir}")

        module_name, class_name = self._read_entry_point(project)

        # Stale modules from an earlier load must not shadow the new binaries.
        _purge_modules(bin_dir)
        self._check_package_free(project, module_name)
        importlib.invalidate_caches()
        sys.path.insert(0, str(bin_dir))

        try:
            module = importlib.import_module(module_name)
            instance_cls = getattr(module, class_name)
            instance = instance_cls()
        except Exception as e:
            self._discard(bin_dir)
            raise LoadError(
                project, f"Failed to load entry point {module_name}:{class_name} of project {project.name}: {e}"
            ) from e

        if not isinstance(instance, ProjectInstance):
            self._discard(bin_dir)
            raise LoadError(
                project,
                f"Entry point {module_name}:{class_name} of project {project.name}"
                f" is not a ProjectInstance subclass.",
            )

        instance.project = project
        try:
            instance.on_load()
        except Exception as e:
            self._discard(bin_dir)
            raise LoadError(project, f"on_load() of project {project.name} failed: {e}") from e

        logger.debug(f"Imported {module_name}:{class_name} from {bin_dir}")
        return instance

    def unload(self, project: "Project", instance: Optional[ProjectInstance]) -> None:
        try:
            if instance is not None:
                instance.on_unload()
        except Exception as e:
            raise UnloadError(project, f"on_unload() of project {project.name} failed: {e}") from e
        finally:
            if instance is not None:
                instance.project = None
            self._discard(project.bin_dir)

    def _read_entry_point(self, project: "Project") -> tuple[str, str]:
        try:
            manifest = read_manifest(project.bin_dir / self._manifest_name)
        except DependencyError as e:
            raise LoadError(project, str(e)) from e

        entry = manifest.get("main")
        if not isinstance(entry, str) or ":" not in entry:
            raise LoadError(
                project,
                f"Project {project.name} does not declare a valid entry point"
                f" ('main: package.module:ClassName') in {self._manifest_name}.",
            )
        module_name, _, class_name = entry.strip().partition(":")
        return module_name.strip(), class_name.strip()

    @staticmethod
    def _check_package_free(project: "Project", module_name: str) -> None:
        """
        Fail if the top-level package of the entry point is already imported
        from somewhere other than this project's bin/.

        All projects share sys.modules, so importing would silently return the
        other module.
        """
        package = module_name.partition(".")[0]
        existing = sys.modules.get(package)
        if existing is None:
            return

        owner = None
        for other in project.registry.get_projects():
            if other is not project and _is_inside(existing, other.bin_dir):
                owner = other
                break
        if owner is not None:
            where = f"by project {owner.name}"
        else:
            paths = _module_paths(existing)
            where = f"from {paths[0]}" if paths else "as a built-in module"
        raise LoadError(
            project,
            f"Package {package} of project {project.name} is already imported {where}.",
        )

    @staticmethod
    def _discard(bin_dir: Path) -> None:
        _purge_modules(bin_dir)
        path = str(bin_dir)
        while path in sys.path:
            sys.path.remove(path)
        sys.path_importer_cache.pop(path, None)


def _module_paths(module) -> list[str]:
    origin = getattr(module, "__file__", None)
    if origin:
        return [origin]
    # Namespace packages only have __path__.
    return [str(p) for p in getattr(module, "__path__", None) or []]


def _is_inside(module, directory: Path) -> bool:
    root = directory.resolve()
    for path in _module_paths(module):
        try:
            if Path(path).resolve().is_relative_to(root):
                return True
        except OSError:
            continue
    return False


def _purge_modules(bin_dir: Path) -> list[str]:
    """Remove every module imported from bin_dir from sys.modules."""
    purged = []
    for name, module in list(sys.modules.items()):
        if _is_inside(module, bin_dir):
            del sys.modules[name]
            purged.append(name)
    return purged
