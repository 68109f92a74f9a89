"""
Shared tmux actions for panewatch.

Navigation (jump to a pane), approving permission prompts and publishing
pane options. Every command goes through a ProcessRunner so a wedged tmux
server cannot hang the caller.
"""

from typing import Dict, List, Optional

from .errors import RunError
from .logging_config import get_logger
from .process_runner import tmux_command
from .protocols import CommandRunner


log = get_logger(__name__)

ACTION_TIMEOUT = 3.0


def _run_all(runner: CommandRunner, commands: List[List[str]], what: str) -> bool:
    for cmd in commands:
        try:
            runner.run(cmd, timeout=ACTION_TIMEOUT)
        except RunError as e:
            log.warning("Failed to %s: %s", what, e)
            return False
    return True


def switch_to_pane(
    runner: CommandRunner,
    session_name: str,
    window_index: int,
    pane_id: str,
    socket: Optional[str] = None,
) -> bool:
    """Bring a pane to the front of the attached tmux client.

    Returns:
        True if all three tmux commands succeeded
    """
    target = f"{session_name}:{window_index}"
    commands = [
        tmux_command("switch-client", "-t", session_name, socket=socket),
        tmux_command("select-window", "-t", target, socket=socket),
        tmux_command("select-pane", "-t", pane_id, socket=socket),
    ]
    return _run_all(runner, commands, f"switch to {pane_id}")


def send_keys(
    runner: CommandRunner,
    pane_id: str,
    keys: str,
    enter: bool = True,
    socket: Optional[str] = None,
) -> bool:
    """Send literal keys to a pane, optionally followed by Enter."""
    commands = [tmux_command("send-keys", "-t", pane_id, "-l", keys, socket=socket)]
    if enter:
        commands.append(tmux_command("send-keys", "-t", pane_id, "Enter", socket=socket))
    return _run_all(runner, commands, f"send keys to {pane_id}")


def approve(runner: CommandRunner, pane_id: str, socket: Optional[str] = None) -> bool:
    """Accept a pending permission prompt ("y" then Enter)."""
    return send_keys(runner, pane_id, "y", enter=True, socket=socket)


def set_pane_options(
    runner: CommandRunner,
    pane_id: str,
    options: Dict[str, str],
    socket: Optional[str] = None,
) -> bool:
    """Set several pane options in a single tmux invocation.

    Options are chained with tmux's ';' separator so the write is one
    command on the server.
    """
    if not options:
        return True
    args: List[str] = []
    for name, value in options.items():
        if args:
            args.append(";")
        args += ["set-option", "-p", "-t", pane_id, name, value]
    return _run_all(runner, [tmux_command(*args, socket=socket)], f"set options on {pane_id}")
