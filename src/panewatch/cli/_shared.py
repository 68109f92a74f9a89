"""
Shared CLI state: Typer apps, console, options, and rendering helpers.
"""

import time
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..errors import ConfigError
from ..formatters import format_ago, format_cost, format_duration, truncate
from ..logging_config import setup_cli_logging
from ..registry import RegistryHealth, RegistrySnapshot
from ..settings import MonitorSettings, load_settings
from ..status_constants import (
    PROVIDER_DISPLAY_NAMES,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
    get_status_label,
    get_status_symbol,
    needs_attention,
)


# Main app
app = typer.Typer(
    name="panewatch",
    help="Live status of AI coding agents running in tmux panes",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage the panewatch config file",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

console = Console()


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging on stderr")
    ] = False,
):
    """Watch Claude, Gemini and Codex agents across tmux panes."""
    setup_cli_logging(verbose)


# Common options
SocketOption = Annotated[
    Optional[str],
    typer.Option("--socket", "-L", help="tmux socket name (default: $PANEWATCH_TMUX_SOCKET)"),
]
AllOption = Annotated[
    bool, typer.Option("--all", "-a", help="Include panes with no detected agent")
]


def resolve_settings(**overrides) -> MonitorSettings:
    """Load settings, turning a bad config into a clean CLI exit."""
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        rprint(f"[red]Error:[/red] invalid configuration: {e}")
        raise typer.Exit(1)


def build_status_table(
    snapshot: RegistrySnapshot,
    show_all: bool = False,
    health: Optional[RegistryHealth] = None,
    now: Optional[float] = None,
) -> Table:
    """Render a registry snapshot as a rich table, attention first."""
    now = time.time() if now is None else now
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("", width=2)
    table.add_column("Pane", style="cyan", no_wrap=True)
    table.add_column("Folder", no_wrap=True)
    table.add_column("Agent")
    table.add_column("Status")
    table.add_column("For", justify="right")
    table.add_column("Task")
    table.add_column("Cost", justify="right")

    for state in snapshot.visible(show_all=show_all):
        icon, color = get_status_symbol(state.status)
        if state.cost is not None:
            cost = format_cost(state.cost.cost_usd)
        elif state.cost_error:
            cost = "[dim]n/a[/dim]"
        else:
            cost = "[dim]-[/dim]"
        table.add_row(
            Text(icon, style=color),
            Text(state.pane.display_name, style="bold" if needs_attention(state.status) else ""),
            state.pane.folder_name,
            PROVIDER_DISPLAY_NAMES.get(state.provider, state.provider),
            Text(get_status_label(state.status), style=color),
            format_duration(state.status_duration(now)),
            truncate(state.task, 50),
            cost,
        )

    counts = snapshot.counts()
    caption = (
        f"{len(snapshot)} panes: {counts[STATUS_WORKING]} working, "
        f"{counts[STATUS_WAITING_INPUT]} waiting, {counts[STATUS_PERMISSION]} permission"
    )
    if snapshot.taken_at:
        caption += f", updated {format_ago(snapshot.age(now))}"
    if health is not None and health.degraded:
        caption += f"  [yellow]tmux unavailable ({health.consecutive_failures}x), showing last data[/yellow]"
    table.caption = caption
    return table
