"""
Enumerate tmux panes with one batched command.

A single `tmux list-panes -a -F <format>` returns every pane together with
its published agent options, so the common case costs exactly one external
call per refresh regardless of pane count.
"""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional

from .errors import RunError, SourceUnavailable
from .logging_config import get_logger
from .process_runner import tmux_command
from .protocols import CommandRunner


log = get_logger(__name__)

OPT_PROVIDER = "@agent_provider"
OPT_STATUS = "@agent_status"
OPT_TASK = "@agent_task"
PUBLISHED_OPTIONS = (OPT_PROVIDER, OPT_STATUS, OPT_TASK)

# Field order is fixed; the task goes last so tabs inside it survive the split.
PANE_FIELDS = (
    "pane_id",
    "session_name",
    "window_index",
    "pane_index",
    "pane_current_path",
    "pane_pid",
    "pane_current_command",
    "pane_tty",
    "pane_title",
    OPT_PROVIDER,
    OPT_STATUS,
    OPT_TASK,
)
PANE_FORMAT = "\t".join(f"#{{{name}}}" for name in PANE_FIELDS)

# Shorter lines cannot identify a pane
MIN_FIELDS = 5


def _empty_published() -> Mapping[str, str]:
    return MappingProxyType({name: "" for name in PUBLISHED_OPTIONS})


@dataclass(frozen=True)
class Pane:
    """One tmux pane as observed in a single listing."""
    id: str
    session_name: str
    window_index: int
    pane_index: int
    current_path: str = ""
    pane_pid: Optional[int] = None
    current_command: str = ""
    tty: str = ""
    title: str = ""
    published: Mapping[str, str] = field(default_factory=_empty_published)

    @property
    def provider_option(self) -> str:
        return self.published.get(OPT_PROVIDER, "")

    @property
    def status_option(self) -> str:
        return self.published.get(OPT_STATUS, "")

    @property
    def task_option(self) -> str:
        return self.published.get(OPT_TASK, "")

    @property
    def has_published_signal(self) -> bool:
        return bool(self.provider_option or self.status_option)

    @property
    def display_name(self) -> str:
        return f"{self.session_name}:{self.window_index}.{self.pane_index}"

    @property
    def target(self) -> str:
        """tmux target string for select-window style commands."""
        return f"{self.session_name}:{self.window_index}"

    @property
    def folder_name(self) -> str:
        """Last component of the working directory."""
        trimmed = self.current_path.rstrip("/")
        return trimmed.rsplit("/", 1)[-1] if trimmed else ""

    @property
    def sort_key(self):
        return (self.session_name, self.window_index, self.pane_index)


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_pane_line(line: str) -> Optional[Pane]:
    """Parse one line of list-panes output. Returns None if malformed.

    Pure function - no side effects, fully testable.
    """
    if not line.strip():
        return None
    parts = line.split("\t", len(PANE_FIELDS) - 1)
    if len(parts) < MIN_FIELDS or not parts[0]:
        return None
    parts += [""] * (len(PANE_FIELDS) - len(parts))
    values = dict(zip(PANE_FIELDS, parts))

    pid = _parse_int(values["pane_pid"]) if values["pane_pid"] else None
    published = MappingProxyType({name: values[name] for name in PUBLISHED_OPTIONS})
    return Pane(
        id=values["pane_id"],
        session_name=values["session_name"],
        window_index=_parse_int(values["window_index"]),
        pane_index=_parse_int(values["pane_index"]),
        current_path=values["pane_current_path"],
        pane_pid=pid or None,
        current_command=values["pane_current_command"],
        tty=values["pane_tty"],
        title=values["pane_title"],
        published=published,
    )


def parse_pane_listing(output: str) -> List[Pane]:
    """Parse full list-panes output, skipping malformed lines."""
    panes = []
    for line in output.splitlines():
        pane = parse_pane_line(line)
        if pane is None:
            if line.strip():
                log.debug("skipping malformed pane line: %r", line)
            continue
        panes.append(pane)
    return panes


class TmuxPaneSource:
    """PaneSource backed by `tmux list-panes -a`.

    Args:
        runner: ProcessRunner used for the single listing call
        timeout: Limit for the listing call
        socket: Optional tmux socket name (-L)
        exclude_pane_id: Pane to hide (our own); defaults to $TMUX_PANE
    """

    def __init__(
        self,
        runner: CommandRunner,
        timeout: float = 3.0,
        socket: Optional[str] = None,
        exclude_pane_id: Optional[str] = None,
    ):
        self.runner = runner
        self.timeout = timeout
        self.socket = socket
        self.exclude_pane_id = exclude_pane_id if exclude_pane_id is not None \
            else os.environ.get("TMUX_PANE", "")

    def list(self) -> List[Pane]:
        cmd = tmux_command("list-panes", "-a", "-F", PANE_FORMAT, socket=self.socket)
        try:
            result = self.runner.run(cmd, timeout=self.timeout)
        except RunError as e:
            raise SourceUnavailable(str(e)) from e
        panes = parse_pane_listing(result.stdout)
        if self.exclude_pane_id:
            panes = [p for p in panes if p.id != self.exclude_pane_id]
        return panes
