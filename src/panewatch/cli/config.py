"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app


CONFIG_TEMPLATE = """\
# Panewatch configuration
# Location: ~/.panewatch/config.yaml

# Refresh engine tuning
# monitor:
#   interval: 2              # target seconds between refreshes
#   min_gap: 1               # minimum idle time between refreshes
#   max_probe_workers: 4     # concurrent per-pane lookups
#   list_timeout: 3          # seconds allowed for tmux list-panes
#   probe_timeout: 2         # seconds allowed for capture-pane / ps / lsof
#   cost_timeout: 5          # seconds a cycle waits for a requested cost
#   cwd_ttl: 30              # seconds a process working directory is cached
#   log_path_ttl: 60         # seconds a session log location is cached
#   legacy_probes: false     # scrape panes that publish no status
#   legacy_probe_ttl: 10     # minimum seconds between scrapes of one pane
#   capture_lines: 40
#   tmux_socket: default     # or set PANEWATCH_TMUX_SOCKET
#   auto_jump: false         # switch to panes asking for permission
#   show_all: false          # list panes with no detected agent

# Desktop notifications when agents finish or need permission
# notifications:
#   enabled: false
#   mode: both               # off, sound, banner or both
"""


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.panewatch/config.yaml with all options commented out.
    Use --force to overwrite an existing config file.
    """
    from .. import config

    config.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)

    if config.CONFIG_PATH.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {config.CONFIG_PATH}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    config.CONFIG_PATH.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{config.CONFIG_PATH}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    _config_show()


def _config_show():
    """Internal function to display the config file and effective settings."""
    from dataclasses import asdict

    from .. import config
    from ._shared import resolve_settings

    if not config.CONFIG_PATH.exists():
        rprint(f"[dim]No config file found at {config.CONFIG_PATH}[/dim]")
        rprint("[dim]Run 'panewatch config init' to create one[/dim]")
    elif not config.load_config():
        rprint(f"[dim]Config file is empty: {config.CONFIG_PATH}[/dim]")
    else:
        rprint(f"[bold]Configuration[/bold] ({config.CONFIG_PATH}):")

    settings = resolve_settings()
    rprint("\n[bold]Effective settings:[/bold]")
    for name, value in asdict(settings).items():
        rprint(f"  {name}: {value}")


@config_app.command("path")
def config_path():
    """Show the config file path."""
    from .. import config
    print(config.CONFIG_PATH)
