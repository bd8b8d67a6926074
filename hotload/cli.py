"""
CLI interface for hotload.

Provides commands to discover, compile, load and unload projects.

Projects live in sub-directories of the configured projects directory. The
registry only exists for the lifetime of one invocation, so commands are
chained and run in order against the same registry:

    hotload recompile-all
    hotload load-all unload core --cascade list

Everything still loaded when the last command finished is unloaded, so
on_unload() hooks run on a normal exit.
"""

import click

from hotload import __version__
from hotload.schemas import ProjectDependency, UnloadMethod


def _fail(message: str) -> None:
    click.echo(f"✗ {message}", err=True)
    raise SystemExit(1)


def _get_orchestrator(ctx):
    """Build the registry from the loaded config on first use."""
    from hotload.backends import PythonCompiler, PythonLoader
    from hotload.manifest import ManifestDependencyResolver
    from hotload.orchestrator import BatchOrchestrator
    from hotload.registry import ProjectRegistry
    from hotload.store import DirectoryProjectStore
    from hotload.utils import setup_logging

    if "orchestrator" in ctx.obj:
        return ctx.obj["orchestrator"]

    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'hotload init' to create a configuration file.", err=True)
        raise SystemExit(1)

    config = ctx.obj["config"]
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        console_output=config.console,
    )

    registry = ProjectRegistry(
        resolver=ManifestDependencyResolver(config.manifest_name),
        compiler=PythonCompiler(),
        loader=PythonLoader(config.manifest_name),
        store=DirectoryProjectStore(config.projects_dir),
    )
    registry.add_projects_from_store()

    orchestrator = BatchOrchestrator(registry)
    ctx.obj["orchestrator"] = orchestrator
    return orchestrator


def _report(handler) -> bool:
    """Print compiler feedback and errors. Returns True if there were errors."""
    for message in handler.compiler_feedback:
        click.echo(f"  {message}")
    for error in handler.errors:
        click.echo(f"✗ {error.project_name or '<general>'}: {error}", err=True)
    return bool(handler.errors)


def _names(projects) -> str:
    return ", ".join(sorted(p.name for p in projects)) or "-"


@click.group(chain=True)
@click.version_option(version=__version__, prog_name="hotload")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config.yaml")
@click.pass_context
def main(ctx, config_path):
    """
    hotload - Dependency-aware project compiler and hot loader.

    Commands can be chained; they share one registry.
    """
    from pathlib import Path

    from hotload.config import load_config
    from hotload.errors import ConfigError

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(Path(config_path) if config_path else None)
    except (FileNotFoundError, ConfigError) as e:
        # init works without a config; everything else fails in _get_orchestrator
        ctx.obj["config_error"] = str(e)


@main.result_callback()
@click.pass_context
def _shutdown(ctx, results, **kwargs):
    """Unload whatever the chained commands left loaded."""
    from hotload.handlers import LoggingFeedbackHandler

    orchestrator = ctx.obj.get("orchestrator")
    if orchestrator is not None and orchestrator.registry.get_loaded_project_names():
        orchestrator.unload_all(LoggingFeedbackHandler())


@main.command("init")
@click.option("--projects-dir", default="~/hotload/projects", show_default=True, help="Directory holding the projects")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(projects_dir: str, force: bool):
    """Initialize hotload configuration."""
    import yaml
    from pathlib import Path

    from hotload.config import HotloadConfig, get_hotload_home

    home = get_hotload_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        _fail(f"Config already exists at {cfg_path}. Use --force to overwrite.")

    config = HotloadConfig(projects_dir=Path(projects_dir).expanduser())
    cfg_path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False))
    config.projects_dir.mkdir(parents=True, exist_ok=True)

    click.echo(f"Initialized hotload config at {cfg_path}")
    click.echo(f"Projects directory: {config.projects_dir}")


@main.command("list")
@click.pass_context
def list_projects(ctx):
    """List registered projects with their state."""
    orchestrator = _get_orchestrator(ctx)
    projects = sorted(orchestrator.registry.get_projects(), key=lambda p: p.name)

    if not projects:
        click.echo("No projects found.")
        return

    for project in projects:
        compiled = "compiled" if project.bin_dir.is_dir() else "not compiled"
        disabled = ", disabled" if project.disabled else ""
        click.echo(f"  {project.name}  [{project.state.value}, {compiled}{disabled}]")


@main.command("load-all")
@click.pass_context
def load_all(ctx):
    """Load all compiled projects, dependencies first."""
    from hotload.handlers import CollectingFeedbackHandler

    orchestrator = _get_orchestrator(ctx)
    handler = CollectingFeedbackHandler()
    result = orchestrator.load_all(handler)

    click.echo(f"Loaded: {_names(result.loaded)}")
    if _report(handler):
        raise SystemExit(1)


@main.command("unload-all")
@click.pass_context
def unload_all(ctx):
    """Unload all loaded projects, dependents first."""
    from hotload.handlers import CollectingFeedbackHandler

    orchestrator = _get_orchestrator(ctx)
    handler = CollectingFeedbackHandler()
    unloaded = orchestrator.unload_all(handler)

    click.echo(f"Unloaded: {_names(unloaded)}")
    if _report(handler):
        raise SystemExit(1)


@main.command("recompile-all")
@click.pass_context
def recompile_all(ctx):
    """
    Recompile all projects and load them again.

    New project directories are picked up and deleted ones are dropped.
    """
    from hotload.errors import ConsistencyError
    from hotload.handlers import CollectingFeedbackHandler

    orchestrator = _get_orchestrator(ctx)
    handler = CollectingFeedbackHandler()
    try:
        result = orchestrator.recompile_all(handler)
    except ConsistencyError as e:
        _report(handler)
        _fail(f"Recompile-all aborted: {e}")

    if result.added:
        click.echo(f"Added: {_names(result.added)}")
    if result.removed:
        click.echo(f"Removed: {_names(result.removed)}")
    click.echo(f"Compiled: {_names(result.compiled)}")
    click.echo(f"Loaded: {_names(result.loaded)}")
    if _report(handler):
        raise SystemExit(1)


@main.command("recompile")
@click.argument("name")
@click.pass_context
def recompile(ctx, name: str):
    """
    Recompile a single project and load it.

    NAME is the project directory name. The old binaries are kept when the
    compilation fails.
    """
    from hotload.errors import HotloadError
    from hotload.handlers import CollectingFeedbackHandler

    orchestrator = _get_orchestrator(ctx)
    project = orchestrator.registry.get_project(name)
    if project is None:
        _fail(f"Unknown project: {name}")

    handler = CollectingFeedbackHandler()
    try:
        orchestrator.recompile(project, feedback=handler, unload_handler=handler)
    except HotloadError as e:
        _report(handler)
        _fail(f"{name} failed: {e}")

    _report(handler)
    click.echo(f"✓ {name} recompiled")


def _load_with_dependencies(project, visiting) -> None:
    """Load the project after its compiled project dependencies."""
    if project.is_loaded or project in visiting:
        return
    visiting.add(project)
    project.init_dependencies()
    for dep in project.dependencies:
        if isinstance(dep, ProjectDependency) and dep.project is not None:
            _load_with_dependencies(dep.project, visiting)
    project.load()


@main.command("load")
@click.argument("name")
@click.pass_context
def load(ctx, name: str):
    """
    Load a single compiled project.

    Project dependencies that are not loaded yet are loaded first.
    """
    from hotload.errors import DependencyError, LoadError

    orchestrator = _get_orchestrator(ctx)
    project = orchestrator.registry.get_project(name)
    if project is None:
        _fail(f"Unknown project: {name}")
    if project.is_loaded:
        _fail(f"{name} is already loaded")

    try:
        _load_with_dependencies(project, set())
    except (LoadError, DependencyError) as e:
        _fail(f"{name} failed: {e}")

    click.echo(f"✓ {name} loaded")


@main.command("unload")
@click.argument("name")
@click.option("--cascade", is_flag=True, help="Also unload loaded projects that depend on it")
@click.pass_context
def unload(ctx, name: str, cascade: bool):
    """Unload a single project."""
    from hotload.errors import UnloadError
    from hotload.handlers import CollectingFeedbackHandler

    orchestrator = _get_orchestrator(ctx)
    project = orchestrator.registry.get_project(name)
    if project is None:
        _fail(f"Unknown project: {name}")
    if not project.is_loaded:
        _fail(f"{name} is not loaded")

    method = UnloadMethod.UNLOAD_DEPENDENTS if cascade else UnloadMethod.EXCEPTION_ON_LOADED_DEPENDENTS
    handler = CollectingFeedbackHandler()
    try:
        unloaded = orchestrator.unload(project, method, handler)
    except UnloadError as e:
        _fail(f"{name} failed: {e}")

    click.echo(f"Unloaded: {_names(unloaded)}")
    if _report(handler):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
