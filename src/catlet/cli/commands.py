"""Command implementations for CLI."""

import asyncio
import io
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from ruamel.yaml import YAML

from catlet.errors import CatletError, ConfigurationError, OperationTimeoutError
from catlet.lifecycle.cache import StatusCache
from catlet.lifecycle.config import ConfigManager
from catlet.lifecycle.orchestrator import Action, LifecycleOrchestrator, ReconcileResult
from catlet.lifecycle.projects import ProjectManager, parse_network_config
from catlet.lifecycle.resolver import ConfigurationResolver
from catlet.lifecycle.tracker import EventListener, OperationTracker
from catlet.models.catlet import CatletDefinition
from catlet.models.operation import LogLine, ProgressEvent, TaskStarted, TaskUpdated
from catlet.models.status import ReconciledState
from catlet.providers.base import ComputeAPI, StopMode
from catlet.providers.cloudinit import CloudInitProvider
from catlet.providers.eryph import EryphComputeClient
from catlet.utils.logging import setup_logging


console = Console()


STATE_COLORS = {
    ReconciledState.RUNNING: "green",
    ReconciledState.STOPPED: "yellow",
    ReconciledState.ABSENT: "dim",
    ReconciledState.UNKNOWN: "magenta",
    ReconciledState.ERROR: "red",
}


class StateStore:
    """Local catlet identifiers, persisted as JSON."""

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / "catlets.json"
        self._ids: Dict[str, str] = {}
        if self.path.exists():
            try:
                self._ids = json.loads(self.path.read_text())
            except ValueError as e:
                raise ConfigurationError(f"Corrupt state file {self.path}: {e}") from e

    def get(self, name: str) -> Optional[str]:
        return self._ids.get(name)

    def set(self, name: str, catlet_id: Optional[str]):
        """Remember or forget the identifier of a catlet."""
        if self._ids.get(name) == catlet_id:
            return
        if catlet_id:
            self._ids[name] = catlet_id
        else:
            self._ids.pop(name, None)
        self.save()

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._ids, indent=2, sort_keys=True))


class CatletSession:
    """Loaded configuration plus local state for one CLI invocation."""

    def __init__(self, config_dir: Optional[str] = None):
        self.manager = ConfigManager(config_dir)
        asyncio.run(self.manager.load())
        self.config = self.manager.config
        setup_logging(self.config.log_level)
        self.state = StateStore(self.manager.state_dir)

    def names(self) -> List[str]:
        return sorted(self.manager.catlets)

    def definition(self, name: str) -> CatletDefinition:
        definition = self.manager.get_definition(name)
        if not definition:
            raise ConfigurationError(f"Catlet '{name}' is not configured")
        return definition

    def client(self) -> EryphComputeClient:
        return EryphComputeClient(self.config.api)

    def orchestrator(
        self,
        definition: CatletDefinition,
        api: ComputeAPI,
        cache: StatusCache,
        listener: Optional[EventListener] = None,
    ) -> LifecycleOrchestrator:
        tracker = OperationTracker(api, poll_interval=self.config.operations.poll_interval)
        return LifecycleOrchestrator(
            definition,
            api,
            cache,
            tracker=tracker,
            operation_timeout=self.config.operations.timeout,
            listener=listener,
        )

    def projects(self, api: ComputeAPI) -> ProjectManager:
        tracker = OperationTracker(api, poll_interval=self.config.operations.poll_interval)
        return ProjectManager(api, tracker, operation_timeout=self.config.operations.timeout)


def _progress_listener(progress: Progress, task, name: str) -> EventListener:
    """Feed operation progress into a spinner line."""
    def listener(event: ProgressEvent):
        if isinstance(event, TaskStarted) and event.primary:
            progress.update(task, description=f"{name}: {event.name}")
        elif isinstance(event, TaskUpdated) and event.progress is not None:
            progress.update(task, description=f"{name}: {event.name} ({event.progress}%)")
        elif isinstance(event, LogLine):
            progress.update(task, description=f"{name}: {event.message}")
    return listener


async def _reconcile(
    session: CatletSession,
    api: ComputeAPI,
    cache: StatusCache,
    name: str,
    action: Action,
    progress: Progress,
    stop_mode: StopMode = StopMode.GRACEFUL,
) -> ReconcileResult:
    """Run one action for one catlet and persist its identifier."""
    task = progress.add_task(f"{action.value.capitalize()} {name}...", total=None)
    orchestrator = session.orchestrator(
        session.definition(name), api, cache, listener=_progress_listener(progress, task, name)
    )
    try:
        result = await orchestrator.reconcile(action, session.state.get(name), stop_mode=stop_mode)
    except OperationTimeoutError as e:
        # keep the id so the next run resumes instead of creating twice
        if e.catlet_id:
            session.state.set(name, e.catlet_id)
        raise
    finally:
        progress.update(task, completed=True, visible=False)

    session.state.set(name, result.local_id)
    return result


def _print_result(name: str, result: ReconcileResult):
    color = STATE_COLORS.get(result.state, "white")
    line = f"[green]✓[/green] Catlet {name}: [{color}]{result.state.value}[/{color}]"
    if result.message:
        line += f" ({result.message})"
    console.print(line)


def run_action(
    session: CatletSession,
    name: str,
    action: Action,
    stop_mode: StopMode = StopMode.GRACEFUL,
    quiet: bool = False,
) -> ReconcileResult:
    """Run a lifecycle action for a single catlet."""
    async def _run():
        async with session.client() as api:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                disable=quiet,
            ) as progress:
                return await _reconcile(session, api, StatusCache(api), name, action, progress, stop_mode)

    result = asyncio.run(_run())
    if not quiet:
        _print_result(name, result)
    return result


def up_catlets(session: CatletSession, name: Optional[str], all_catlets: bool, parallel: bool = False):
    """Bring one or all configured catlets up."""
    if not all_catlets:
        run_action(session, name, Action.UP)
        return

    names = session.names()
    if not names:
        console.print("[yellow]No catlets configured[/yellow]")
        return

    async def _run() -> List[Tuple[str, object]]:
        async with session.client() as api:
            cache = StatusCache(api)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                if parallel:
                    outcomes = await asyncio.gather(
                        *(_reconcile(session, api, cache, n, Action.UP, progress) for n in names),
                        return_exceptions=True,
                    )
                    for outcome in outcomes:
                        if isinstance(outcome, Exception) and not isinstance(outcome, CatletError):
                            raise outcome
                    return list(zip(names, outcomes))

                results = []
                for n in names:
                    try:
                        results.append((n, await _reconcile(session, api, cache, n, Action.UP, progress)))
                    except CatletError as e:
                        results.append((n, e))
                return results

    results = asyncio.run(_run())

    failures = [(n, outcome) for n, outcome in results if isinstance(outcome, BaseException)]
    for n, outcome in results:
        if not isinstance(outcome, BaseException):
            _print_result(n, outcome)
    console.print(f"[green]✓[/green] {len(results) - len(failures)}/{len(results)} catlets up")

    for n, error in failures:
        console.print(f"  [red]✗[/red] {n}: {error}")
    if failures:
        raise CatletError(f"{len(failures)} of {len(results)} catlets failed")


def halt_catlet(session: CatletSession, name: str, mode: StopMode = StopMode.GRACEFUL):
    """Stop a catlet."""
    run_action(session, name, Action.HALT, stop_mode=mode)


def destroy_catlet(session: CatletSession, name: str):
    """Destroy a catlet."""
    run_action(session, name, Action.DESTROY)


def reload_catlet(session: CatletSession, name: str):
    """Restart a catlet."""
    run_action(session, name, Action.RELOAD)


def resume_catlet(session: CatletSession, name: str):
    """Start a stopped catlet."""
    run_action(session, name, Action.RESUME)


def show_status(session: CatletSession, name: Optional[str] = None):
    """Show the state of one or all configured catlets."""
    names = [name] if name else session.names()
    if name:
        session.definition(name)

    async def _run():
        async with session.client() as api:
            cache = StatusCache(api)
            rows = []
            for n in names:
                orchestrator = session.orchestrator(session.definition(n), api, cache)
                observation = await orchestrator.observe(session.state.get(n))
                session.state.set(n, observation.local_id)
                address = None
                if observation.state != ReconciledState.ABSENT:
                    address = observation.summary.reachable_address()
                rows.append((n, observation.local_id, observation.state, address))
            return rows

    rows = asyncio.run(_run())

    table = Table(title="Catlets")
    table.add_column("Name", style="cyan")
    table.add_column("State")
    table.add_column("Id", style="dim")
    table.add_column("Address", style="magenta")

    for n, catlet_id, state, address in rows:
        color = STATE_COLORS.get(state, "white")
        table.add_row(n, f"[{color}]{state.value}[/{color}]", catlet_id or "-", address or "-")

    console.print(table)


def ssh_info(session: CatletSession, name: str, show_password: bool = False):
    """Show how to connect to a running catlet."""
    definition = session.definition(name)

    async def _run():
        async with session.client() as api:
            orchestrator = session.orchestrator(definition, api, StatusCache(api))
            return await orchestrator.read_connection_info(session.state.get(name))

    info = asyncio.run(_run())
    if info is None:
        console.print(f"[yellow]Catlet {name} is not reachable yet[/yellow]")
        return

    console.print(f"[bold]Catlet: {name}[/bold]")
    console.print(f"  Host: {info.host}")
    console.print(f"  Port: {info.port}")
    console.print(f"  User: {info.username}")
    if info.private_key_path:
        console.print(f"  Identity: {info.private_key_path}")
    if info.password:
        console.print(f"  Password: {info.password if show_password else '********'}")


def validate_config(session: CatletSession):
    """Validate all catlet definitions locally."""
    cloud_init = CloudInitProvider()
    resolver = ConfigurationResolver()
    invalid = dict(session.manager.load_errors)

    table = Table(title="Catlet definitions")
    table.add_column("Name", style="cyan")
    table.add_column("Parent", style="magenta")
    table.add_column("Project")
    table.add_column("Fodder")
    table.add_column("Valid")

    for name in session.names():
        definition = session.definition(name)
        try:
            spec = resolver.resolve(definition, cloud_init.generate(definition))
        except ConfigurationError as e:
            invalid[name] = str(e)
            table.add_row(name, definition.parent or "-", definition.project, "-", "[red]✗[/red]")
            continue
        table.add_row(name, spec.parent, spec.project, str(len(spec.fodder)), "[green]✓[/green]")

    console.print(table)

    if invalid:
        console.print("[red]✗[/red] Configuration is invalid")
        for source, error in invalid.items():
            console.print(f"  {source}: {error}")
        raise ConfigurationError(f"{len(invalid)} invalid catlet definition(s)")

    console.print("[green]✓[/green] Configuration is valid")
    console.print(f"  Catlets: {len(session.names())}")


def _project_call(session: CatletSession, description: str, call):
    """Run ``call(projects)`` against a fresh client behind a spinner."""
    async def _run():
        async with session.client() as api:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task(description, total=None)
                try:
                    return await call(session.projects(api))
                finally:
                    progress.update(task, completed=True, visible=False)

    return asyncio.run(_run())


def list_projects(session: CatletSession):
    """List compute projects."""
    projects = _project_call(session, "Listing projects...", lambda p: p.list())

    if not projects:
        console.print("[yellow]No projects found[/yellow]")
        return

    table = Table(title="Projects")
    table.add_column("Name", style="cyan")
    table.add_column("Id", style="dim")
    for project in projects:
        table.add_row(project.name, project.id)
    console.print(table)


def create_project(session: CatletSession, name: str):
    """Create a compute project."""
    project = _project_call(session, f"Creating project {name}...", lambda p: p.create(name))
    console.print(f"[green]✓[/green] Project {project.name} created (id: {project.id})")


def remove_project(session: CatletSession, name: str):
    """Remove a compute project and all of its catlets."""
    _project_call(session, f"Removing project {name}...", lambda p: p.remove(name))
    console.print(f"[green]✓[/green] Project {name} removed")


def show_network_config(session: CatletSession, project: str):
    """Print the network configuration of a project as YAML."""
    configuration = _project_call(
        session, f"Reading network configuration of {project}...", lambda p: p.get_network_config(project)
    )
    if not configuration:
        console.print(f"[yellow]Project {project} has no network configuration[/yellow]")
        return

    stream = io.StringIO()
    yaml = YAML()
    yaml.default_flow_style = False
    yaml.dump(configuration, stream)
    console.print(stream.getvalue().rstrip(), markup=False, highlight=False)


def set_network_config(session: CatletSession, project: str, config_file: Path):
    """Replace the network configuration of a project from a YAML file."""
    if not config_file.exists():
        raise ConfigurationError(f"Network configuration file not found: {config_file}")
    configuration = parse_network_config(config_file.read_text())

    _project_call(
        session,
        f"Setting network configuration of {project}...",
        lambda p: p.set_network_config(project, configuration),
    )
    console.print(f"[green]✓[/green] Network configuration of project {project} updated")
