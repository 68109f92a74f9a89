"""
Protocol definitions for external dependencies.

These interfaces allow dependency injection for testing, so the engine,
resolver and cost fetcher can run against in-memory fakes instead of a
real tmux server.
"""

from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from .cost import CostFigure
    from .pane_source import Pane
    from .process_runner import RunResult
    from .registry import PaneState


@runtime_checkable
class CommandRunner(Protocol):
    """Interface for timeout-bounded command execution"""

    def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        check: bool = True,
        input: Optional[str] = None,
    ) -> "RunResult":
        """Run a command; raise a RunError subclass on failure."""
        ...

    def cancel_all(self) -> int:
        """Kill in-flight commands."""
        ...


@runtime_checkable
class PaneSource(Protocol):
    """Anything that can enumerate panes for one refresh cycle."""

    def list(self) -> List["Pane"]:
        """Return all panes, or raise SourceUnavailable."""
        ...


@runtime_checkable
class CostFetcher(Protocol):
    """Interface for explicit cost lookups"""

    def fetch_cost(self, state: "PaneState", cwd: Optional[str] = None) -> "CostFigure":
        """Return a CostFigure or raise a CostError subclass."""
        ...
