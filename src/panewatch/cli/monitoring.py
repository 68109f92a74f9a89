"""
Monitoring commands: status, watch, cost, jump, approve, hook-handler.
"""

import json
import queue
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.live import Live
from rich.table import Table

from ._shared import AllOption, SocketOption, app, build_status_table, console, resolve_settings


def _find_pane(runner, pane_id: str, socket: Optional[str]):
    """Look a pane up in a fresh listing (our own pane included)."""
    from ..errors import SourceUnavailable
    from ..pane_source import TmuxPaneSource

    try:
        panes = TmuxPaneSource(runner, socket=socket, exclude_pane_id="").list()
    except SourceUnavailable as e:
        rprint(f"[red]Error:[/red] cannot list tmux panes: {e}")
        raise typer.Exit(1)
    for pane in panes:
        if pane.id == pane_id or pane.display_name == pane_id:
            return pane
    rprint(f"[red]✗[/red] Pane '[bold]{pane_id}[/bold]' not found")
    raise typer.Exit(1)


@app.command()
def status(
    show_all: AllOption = False,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the snapshot with per-pane stats as JSON")
    ] = False,
    export: Annotated[
        Optional[Path], typer.Option("--export", help="Also write the JSON snapshot to a file")
    ] = None,
    save: Annotated[
        bool, typer.Option("--save", help="Also write the JSON snapshot to ~/.panewatch/stats.json")
    ] = False,
    legacy: Annotated[
        Optional[bool], typer.Option("--legacy/--no-legacy", help="Scrape panes without published status")
    ] = None,
    socket: SocketOption = None,
):
    """Run one refresh cycle and show every agent pane."""
    from ..engine import RefreshEngine
    from ..settings import get_export_path

    settings = resolve_settings(show_all=show_all or None, legacy_probes=legacy, tmux_socket=socket)
    engine = RefreshEngine.from_settings(settings)
    try:
        engine.run_cycle()
    finally:
        engine.stop()

    if engine.registry.health.degraded:
        rprint(f"[red]Error:[/red] tmux unavailable: {engine.registry.health.last_error}")
        raise typer.Exit(1)

    snapshot = engine.registry.snapshot()
    if export is None and save:
        export = get_export_path()
    if export is not None:
        engine.registry.export_json(export)
    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2))
        return

    if not snapshot.visible(show_all=settings.show_all):
        rprint("[dim]No agents detected[/dim]")
        if not settings.show_all:
            rprint("[dim]Use --all to include every pane[/dim]")
        return
    console.print(build_status_table(snapshot, show_all=settings.show_all))


@app.command()
def watch(
    interval: Annotated[
        Optional[float], typer.Option("--interval", "-i", help="Seconds between refreshes")
    ] = None,
    notify: Annotated[
        Optional[bool], typer.Option("--notify/--no-notify", help="Desktop notifications on transitions")
    ] = None,
    jump: Annotated[
        bool, typer.Option("--jump", "-j", help="Switch to panes that start asking for permission")
    ] = False,
    show_all: AllOption = False,
    legacy: Annotated[
        Optional[bool], typer.Option("--legacy/--no-legacy", help="Scrape panes without published status")
    ] = None,
    socket: SocketOption = None,
):
    """Live-updating status table (Ctrl-C to quit)."""
    from ..engine import RefreshEngine
    from ..logging_config import setup_monitor_logging
    from ..notifier import DesktopNotifier
    from ..settings import get_log_path
    from ..tmux_utils import switch_to_pane

    settings = resolve_settings(
        interval=interval,
        notify=notify,
        auto_jump=jump or None,
        show_all=show_all or None,
        legacy_probes=legacy,
        tmux_socket=socket,
    )
    log = setup_monitor_logging(get_log_path())
    log.info("watch started (interval=%.1fs)", settings.interval)

    engine = RefreshEngine.from_settings(settings)
    notifier = DesktopNotifier(engine.runner, mode=settings.notify_mode) if settings.notify else None

    # Observers run on the engine thread; hand events over to this one
    events: "queue.Queue" = queue.Queue()
    engine.subscribe(events.put)
    engine.start()

    def render():
        registry = engine.registry
        return build_status_table(registry.snapshot(), show_all=settings.show_all, health=registry.health)

    try:
        with Live(render(), console=console, refresh_per_second=4, transient=False) as live:
            while True:
                batch = []
                try:
                    batch.append(events.get(timeout=0.25))
                    while True:
                        batch.append(events.get_nowait())
                except queue.Empty:
                    pass

                jumped = False
                for event in batch:
                    if notifier is not None:
                        notifier.queue(event)
                    if settings.auto_jump and event.auto_jump and not jumped:
                        state = engine.registry.snapshot().get(event.pane_id)
                        if state is not None:
                            jumped = switch_to_pane(
                                engine.runner,
                                state.pane.session_name,
                                state.pane.window_index,
                                state.pane.id,
                                socket=settings.tmux_socket,
                            )
                if notifier is not None:
                    notifier.flush()
                live.update(render())
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop()
        log.info("watch stopped")


@app.command()
def cost(
    pane_id: Annotated[
        Optional[str], typer.Argument(help="Pane id (%3) or name (session:1.0); all Claude panes if omitted")
    ] = None,
    socket: SocketOption = None,
):
    """Compute session cost from the agent's logs."""
    from ..cost import LOCATABLE_PROVIDERS
    from ..engine import RefreshEngine
    from ..formatters import format_cost, format_tokens

    settings = resolve_settings(tmux_socket=socket)
    engine = RefreshEngine.from_settings(settings)
    try:
        engine.run_cycle()
        snapshot = engine.registry.snapshot()
        if pane_id:
            targets = [s for s in snapshot.states() if pane_id in (s.pane_id, s.pane.display_name)]
            if not targets:
                rprint(f"[red]✗[/red] Pane '[bold]{pane_id}[/bold]' not found")
                raise typer.Exit(1)
        else:
            targets = [s for s in snapshot.visible() if s.provider in LOCATABLE_PROVIDERS]
        if not targets:
            rprint("[dim]No Claude panes found[/dim]")
            return

        for state in targets:
            engine.request_cost(state.pane_id)
        engine.run_cycle()
    finally:
        engine.stop()

    snapshot = engine.registry.snapshot()
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Pane", style="cyan", no_wrap=True)
    table.add_column("Folder")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    total = 0.0
    for target in targets:
        state = snapshot.get(target.pane_id) or target
        if state.cost is not None:
            figure = state.cost
            total += figure.cost_usd
            table.add_row(
                state.pane.display_name,
                state.pane.folder_name,
                figure.model or "-",
                format_tokens(figure.usage.total_tokens),
                format_cost(figure.cost_usd),
            )
        else:
            table.add_row(
                state.pane.display_name,
                state.pane.folder_name,
                "-",
                "-",
                f"[dim]{state.cost_error or 'unavailable'}[/dim]",
            )
    console.print(table)
    if len(targets) > 1:
        rprint(f"\n[bold]Total:[/bold] {format_cost(total)}")


@app.command()
def jump(
    pane_id: Annotated[str, typer.Argument(help="Pane id (%3) or name (session:1.0)")],
    socket: SocketOption = None,
):
    """Switch the attached tmux client to a pane."""
    from ..process_runner import ProcessRunner
    from ..tmux_utils import switch_to_pane

    settings = resolve_settings(tmux_socket=socket)
    runner = ProcessRunner(default_timeout=settings.list_timeout)
    pane = _find_pane(runner, pane_id, settings.tmux_socket)
    if not switch_to_pane(runner, pane.session_name, pane.window_index, pane.id, socket=settings.tmux_socket):
        rprint(f"[red]✗[/red] Could not switch to {pane.display_name}")
        raise typer.Exit(1)


@app.command()
def approve(
    pane_id: Annotated[str, typer.Argument(help="Pane id (%3) or name (session:1.0)")],
    socket: SocketOption = None,
):
    """Accept a pending permission prompt in a pane."""
    from ..process_runner import ProcessRunner
    from ..tmux_utils import approve as approve_pane

    settings = resolve_settings(tmux_socket=socket)
    runner = ProcessRunner(default_timeout=settings.list_timeout)
    pane = _find_pane(runner, pane_id, settings.tmux_socket)
    if not approve_pane(runner, pane.id, socket=settings.tmux_socket):
        rprint(f"[red]✗[/red] Could not send approval to {pane.display_name}")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Approved [bold]{pane.display_name}[/bold]")


@app.command("hook-handler", hidden=True)
def hook_handler_cmd(
    provider: Annotated[
        str, typer.Option("--provider", "-p", help="Agent that fired the hook")
    ] = "claude",
):
    """Handle agent hook events (internal).

    Called by agent hooks, not by users directly. Reads event JSON from
    stdin and publishes the agent's status on its own tmux pane.
    """
    from ..hook_handler import handle_hook_event
    from ..status_constants import normalize_provider

    handle_hook_event(normalize_provider(provider))
