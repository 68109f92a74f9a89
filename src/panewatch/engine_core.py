"""
Pure business logic for the refresh engine.

These functions contain no I/O and are fully unit-testable.
They are used by RefreshEngine and SessionRegistry but can be tested
independently.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .status_constants import (
    ALL_STATUSES,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
    get_sort_rank,
    is_detected,
)


def compute_next_delay(interval: float, elapsed: float, min_gap: float) -> float:
    """Delay before the next cycle starts.

    Aims for one cycle start per `interval`, but always idles at least
    `min_gap` so an overrunning cycle cannot cause back-to-back cycles.
    """
    return max(interval - max(elapsed, 0.0), min_gap)


@dataclass(frozen=True)
class PaneStats:
    """Accumulated time per status for one pane."""
    working_seconds: float = 0.0
    waiting_seconds: float = 0.0
    permission_seconds: float = 0.0
    state_changes: int = 0

    @property
    def tracked_seconds(self) -> float:
        return self.working_seconds + self.waiting_seconds + self.permission_seconds


def accumulate_time(
    stats: PaneStats,
    previous_status: str,
    new_status: str,
    elapsed_seconds: float,
    max_elapsed: Optional[float] = None,
) -> PaneStats:
    """Credit the time since the last observation to the previous status.

    Pure function - no side effects, fully testable.

    Args:
        stats: Stats so far
        previous_status: Status observed last cycle (time was spent here)
        new_status: Status observed this cycle
        elapsed_seconds: Seconds since the last observation
        max_elapsed: Cap for a single step (gaps from a suspended laptop
            or a stalled tmux server are not credited in full)
    """
    elapsed = max(elapsed_seconds, 0.0)
    if max_elapsed is not None:
        elapsed = min(elapsed, max_elapsed)

    working = stats.working_seconds
    waiting = stats.waiting_seconds
    permission = stats.permission_seconds
    if previous_status == STATUS_WORKING:
        working += elapsed
    elif previous_status == STATUS_WAITING_INPUT:
        waiting += elapsed
    elif previous_status == STATUS_PERMISSION:
        permission += elapsed
    # not_detected: nothing to credit

    changes = stats.state_changes + (1 if previous_status != new_status else 0)
    return PaneStats(working, waiting, permission, changes)


@dataclass(frozen=True)
class AggregateStats:
    """Stats summed over all tracked panes."""
    working_seconds: float
    waiting_seconds: float
    permission_seconds: float
    state_changes: int
    pane_count: int

    @property
    def efficiency(self) -> float:
        """Percentage of tracked time spent working."""
        total = self.working_seconds + self.waiting_seconds + self.permission_seconds
        if total <= 0:
            return 0.0
        return self.working_seconds / total * 100


def aggregate_stats(all_stats: Iterable[PaneStats]) -> AggregateStats:
    """Sum per-pane stats.

    Pure function - no side effects, fully testable.
    """
    working = waiting = permission = 0.0
    changes = 0
    count = 0
    for stats in all_stats:
        working += stats.working_seconds
        waiting += stats.waiting_seconds
        permission += stats.permission_seconds
        changes += stats.state_changes
        count += 1
    return AggregateStats(working, waiting, permission, changes, count)


def count_statuses(statuses: Iterable[str]) -> Dict[str, int]:
    """Count panes per status (every status present, zero if unseen)."""
    counts = {status: 0 for status in ALL_STATUSES}
    for status in statuses:
        counts[status] = counts.get(status, 0) + 1
    return counts


def visible_sort_key(state) -> tuple:
    """Permission first, then working, waiting, not detected; then position."""
    pane = state.pane
    return (get_sort_rank(state.status), pane.session_name, pane.window_index, pane.pane_index)


def select_visible(states: Iterable, show_all: bool = False) -> List:
    """Order pane states for display, hiding undetected panes unless show_all."""
    chosen = [s for s in states if show_all or is_detected(s.status)]
    return sorted(chosen, key=visible_sort_key)


def format_cycle_summary(
    cycle: int,
    counts: Dict[str, int],
    elapsed: float,
    next_delay: float,
) -> str:
    """One-line log summary of a completed cycle."""
    detected = sum(n for status, n in counts.items() if is_detected(status))
    return (
        f"Cycle #{cycle}: {detected} agents "
        f"({counts.get(STATUS_WORKING, 0)} working, "
        f"{counts.get(STATUS_WAITING_INPUT, 0)} waiting, "
        f"{counts.get(STATUS_PERMISSION, 0)} permission), "
        f"took {elapsed:.2f}s, next in {next_delay:.1f}s"
    )
