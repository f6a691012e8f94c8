"""Main CLI implementation using Typer."""

from pathlib import Path
from typing import Any, Callable, Optional

import typer
from rich.console import Console

from catlet.cli.commands import (
    CatletSession,
    create_project,
    destroy_catlet,
    halt_catlet,
    list_projects,
    reload_catlet,
    remove_project,
    resume_catlet,
    set_network_config,
    show_network_config,
    show_status,
    ssh_info,
    up_catlets,
    validate_config,
)
from catlet.errors import CatletError
from catlet.providers.base import StopMode


# Create Typer app
app = typer.Typer(
    name="catletctl",
    help="Catlet Spawn - declarative lifecycle management for eryph catlets",
    add_completion=False,
)

# Console for rich output
console = Console()


def _run_cli_command(handler: Callable[..., Any], config_dir: Optional[str], **kwargs: Any):
    """Helper to run a CLI command with a loaded session and error handling."""
    try:
        session = CatletSession(config_dir=config_dir)
        handler(session, **kwargs)
    except CatletError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


CONFIG_HELP = "Configuration directory (default: $CATLET_CONFIG_DIR or ./config)"


@app.command("up")
def up_command(
    name: Optional[str] = typer.Argument(None, help="Catlet name to bring up"),
    all: bool = typer.Option(False, "--all", help="Bring up all configured catlets"),
    parallel: bool = typer.Option(False, "--parallel", help="Run catlets concurrently with --all"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Create and start catlet(s)."""
    if not name and not all:
        console.print("[red]Error:[/red] Specify catlet name or use --all")
        raise typer.Exit(1)
    _run_cli_command(up_catlets, config, name=name, all_catlets=all, parallel=parallel)


@app.command("halt")
def halt_command(
    name: str = typer.Argument(..., help="Catlet name"),
    mode: StopMode = typer.Option(StopMode.GRACEFUL, "--mode", "-m", help="Stop mode"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Stop a running catlet."""
    _run_cli_command(halt_catlet, config, name=name, mode=mode)


@app.command("destroy")
def destroy_command(
    name: str = typer.Argument(..., help="Catlet name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Destroy without confirmation"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Destroy a catlet completely."""
    if not force:
        confirm = typer.confirm(f"Destroy catlet {name}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(destroy_catlet, config, name=name)


@app.command("reload")
def reload_command(
    name: str = typer.Argument(..., help="Catlet name"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Restart a catlet."""
    _run_cli_command(reload_catlet, config, name=name)


@app.command("resume")
def resume_command(
    name: str = typer.Argument(..., help="Catlet name"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Start a stopped catlet."""
    _run_cli_command(resume_catlet, config, name=name)


@app.command("status")
def status_command(
    name: Optional[str] = typer.Argument(
        None, help="Show status for specific catlet"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Show catlet status."""
    _run_cli_command(show_status, config, name=name)


@app.command("ssh-info")
def ssh_info_command(
    name: str = typer.Argument(..., help="Catlet name"),
    show_password: bool = typer.Option(False, "--show-password", help="Print the password in clear text"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Show connection details of a running catlet."""
    _run_cli_command(ssh_info, config, name=name, show_password=show_password)


# Config subcommands
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate_command(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Validate catlet definitions."""
    _run_cli_command(validate_config, config)


# Project subcommands
project_app = typer.Typer(help="Project commands")
app.add_typer(project_app, name="project")


@project_app.command("list")
def project_list_command(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """List projects."""
    _run_cli_command(list_projects, config)


@project_app.command("create")
def project_create_command(
    name: str = typer.Argument(..., help="Project name"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Create a project."""
    _run_cli_command(create_project, config, name=name)


@project_app.command("remove")
def project_remove_command(
    name: str = typer.Argument(..., help="Project name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Remove without confirmation"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Remove a project and all of its catlets."""
    if not force:
        confirm = typer.confirm(f"Project {name} and all of its catlets will be deleted. Continue?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(remove_project, config, name=name)


# Network subcommands
network_app = typer.Typer(help="Project network commands")
app.add_typer(network_app, name="network")


@network_app.command("get")
def network_get_command(
    project: str = typer.Argument(..., help="Project name"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Show the network configuration of a project."""
    _run_cli_command(show_network_config, config, project=project)


@network_app.command("set")
def network_set_command(
    project: str = typer.Argument(..., help="Project name"),
    file: Path = typer.Option(..., "--file", "-f", help="YAML network configuration"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help=CONFIG_HELP
    ),
):
    """Replace the network configuration of a project."""
    _run_cli_command(set_network_config, config, project=project, config_file=file)


def main():
    """Main entry point for CLI."""
    app()
