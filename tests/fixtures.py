"""
Test fixtures and factories for panewatch unit tests.

Fake runners, sources and clocks so the engine, resolver and cost
fetcher can be exercised without a tmux server.
"""

import threading
import time
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Sequence

from panewatch.errors import NonZeroExit, SourceUnavailable
from panewatch.pane_source import OPT_PROVIDER, OPT_STATUS, OPT_TASK, Pane
from panewatch.process_runner import RunResult


def make_pane(
    id: str = "%1",
    session_name: str = "agents",
    window_index: int = 0,
    pane_index: int = 0,
    current_path: str = "/home/dev/project",
    pane_pid: Optional[int] = 1000,
    current_command: str = "claude",
    tty: str = "/dev/ttys001",
    title: str = "",
    provider: str = "",
    status: str = "",
    task: str = "",
) -> Pane:
    """Create a Pane, optionally with published agent options."""
    return Pane(
        id=id,
        session_name=session_name,
        window_index=window_index,
        pane_index=pane_index,
        current_path=current_path,
        pane_pid=pane_pid,
        current_command=current_command,
        tty=tty,
        title=title,
        published=MappingProxyType({OPT_PROVIDER: provider, OPT_STATUS: status, OPT_TASK: task}),
    )


def make_listing_line(pane: Pane) -> str:
    """Render a Pane the way `tmux list-panes -F PANE_FORMAT` prints it."""
    return "\t".join([
        pane.id,
        pane.session_name,
        str(pane.window_index),
        str(pane.pane_index),
        pane.current_path,
        str(pane.pane_pid or ""),
        pane.current_command,
        pane.tty,
        pane.title,
        pane.provider_option,
        pane.status_option,
        pane.task_option,
    ])


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRunner:
    """CommandRunner that answers from a handler and tracks concurrency.

    Args:
        handler: Maps argv to stdout (str) or raises a RunError subclass.
            Defaults to returning "".
        delay: Seconds each call "runs" for (real sleep, so threads overlap)
    """

    def __init__(
        self,
        handler: Optional[Callable[[List[str]], str]] = None,
        delay: float = 0.0,
    ):
        self.handler = handler or (lambda args: "")
        self.delay = delay
        self.calls: List[List[str]] = []
        self.active = 0
        self.peak_active = 0
        self.cancelled = 0
        self._lock = threading.Lock()

    def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        check: bool = True,
        input: Optional[str] = None,
    ) -> RunResult:
        args = list(args)
        with self._lock:
            self.calls.append(args)
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            stdout = self.handler(args)
        finally:
            with self._lock:
                self.active -= 1
        return RunResult(args=args, returncode=0, stdout=stdout, stderr="", duration=self.delay)

    def cancel_all(self) -> int:
        self.cancelled += 1
        return 0

    def calls_to(self, program: str) -> List[List[str]]:
        """Recorded calls whose argv mentions a program or tmux subcommand."""
        return [c for c in self.calls if program in c]


def failing_handler(args: List[str]) -> str:
    raise NonZeroExit(args, 1, "no server running on /tmp/tmux-501/default")


class FakeSource:
    """PaneSource returning a scripted sequence of listings.

    Each entry is either a list of panes or an exception to raise. The
    last entry repeats once the script runs out.
    """

    def __init__(self, *listings):
        self.listings = list(listings) or [[]]
        self.calls = 0

    def list(self) -> List[Pane]:
        index = min(self.calls, len(self.listings) - 1)
        self.calls += 1
        entry = self.listings[index]
        if isinstance(entry, Exception):
            raise entry
        return list(entry)

    def push(self, entry) -> None:
        self.listings.append(entry)


def unavailable() -> SourceUnavailable:
    return SourceUnavailable("no server running")


class CountingResolver:
    """Wraps a resolver and counts resolve() calls per pane id."""

    def __init__(self, inner):
        self.inner = inner
        self.calls: Dict[str, int] = {}
        self._lock = threading.Lock()

    def resolve(self, pane: Pane):
        with self._lock:
            self.calls[pane.id] = self.calls.get(pane.id, 0) + 1
        return self.inner.resolve(pane)
