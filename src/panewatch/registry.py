"""
Session registry: the single piece of mutable shared state.

The refresh engine is the only writer. Each cycle builds a brand-new
immutable RegistrySnapshot and swaps it in under a lock, so readers (the
dashboard, the CLI) always see one complete cycle and never a mix.

Pane lifecycle:
- first seen -> new PaneState (no transition event)
- gone from the listing -> dropped
- same pane id but a different pane_pid -> replaced, never merged
"""

import json
import threading
import time
from dataclasses import asdict, dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from .engine_core import (
    AggregateStats,
    PaneStats,
    accumulate_time,
    aggregate_stats,
    count_statuses,
    select_visible,
)
from .pane_source import Pane
from .status_resolver import NOT_DETECTED, SOURCE_NONE, Resolution
from .transitions import TransitionEvent, build_event

if TYPE_CHECKING:
    from .cost import CostFigure


# Longest gap credited to a status in one step (see accumulate_time)
MAX_STATS_STEP = 60.0


@dataclass(frozen=True)
class PaneState:
    """Everything the monitor knows about one pane."""
    pane: Pane
    provider: str
    status: str
    status_since: float
    last_seen: float
    task: Optional[str] = None
    previous_status: Optional[str] = None
    source: str = SOURCE_NONE
    # Key into the resolver's cwd cache; the cached value is not owned here
    agent_pid: Optional[int] = None
    cost: Optional["CostFigure"] = None
    cost_fetched_at: Optional[float] = None
    cost_error: Optional[str] = None
    stats: PaneStats = field(default_factory=PaneStats)

    @property
    def pane_id(self) -> str:
        return self.pane.id

    def status_duration(self, now: Optional[float] = None) -> float:
        return max((time.time() if now is None else now) - self.status_since, 0.0)


def is_same_process(old: PaneState, pane: Pane) -> bool:
    """False when tmux reused a pane id for a new process."""
    if old.pane.pane_pid is None or pane.pane_pid is None:
        return True
    return old.pane.pane_pid == pane.pane_pid


def merge_pane_state(
    old: Optional[PaneState],
    pane: Pane,
    resolution: Resolution,
    now: float,
) -> PaneState:
    """Build this cycle's PaneState from last cycle's and a fresh resolution.

    Pure function - no side effects, fully testable.
    """
    if old is None:
        return PaneState(
            pane=pane,
            provider=resolution.provider,
            status=resolution.status,
            status_since=now,
            last_seen=now,
            task=resolution.task,
            source=resolution.source,
            agent_pid=resolution.agent_pid,
        )

    changed = resolution.status != old.status
    stats = accumulate_time(
        old.stats, old.status, resolution.status, now - old.last_seen, max_elapsed=MAX_STATS_STEP
    )
    return replace(
        old,
        pane=pane,
        provider=resolution.provider,
        status=resolution.status,
        status_since=now if changed else old.status_since,
        previous_status=old.status if changed else old.previous_status,
        last_seen=now,
        task=resolution.task,
        source=resolution.source,
        agent_pid=resolution.agent_pid if resolution.agent_pid is not None else old.agent_pid,
        stats=stats,
    )


@dataclass(frozen=True)
class CostOutcome:
    """Result of an explicit cost request, attached at merge time."""
    figure: Optional["CostFigure"] = None
    error: Optional[str] = None


def attach_cost(state: PaneState, outcome: CostOutcome, now: float) -> PaneState:
    """Apply a cost outcome. Failures keep the previous figure."""
    if outcome.figure is not None:
        return replace(state, cost=outcome.figure, cost_fetched_at=now, cost_error=None)
    return replace(state, cost_error=outcome.error or "cost unavailable")


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of one completed cycle."""
    panes: Mapping[str, PaneState]
    taken_at: float = 0.0
    cycle: int = 0

    def get(self, pane_id: str) -> Optional[PaneState]:
        return self.panes.get(pane_id)

    def __len__(self) -> int:
        return len(self.panes)

    def states(self) -> List[PaneState]:
        return list(self.panes.values())

    def visible(self, show_all: bool = False) -> List[PaneState]:
        return select_visible(self.panes.values(), show_all=show_all)

    def counts(self) -> Dict[str, int]:
        return count_statuses(s.status for s in self.panes.values())

    def aggregate(self) -> AggregateStats:
        return aggregate_stats(s.stats for s in self.panes.values())

    def age(self, now: Optional[float] = None) -> float:
        if not self.taken_at:
            return 0.0
        return max((time.time() if now is None else now) - self.taken_at, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly export of the snapshot and per-pane stats."""
        agg = self.aggregate()
        return {
            "taken_at": self.taken_at,
            "cycle": self.cycle,
            "summary": self.counts(),
            "totals": {
                "working_seconds": round(agg.working_seconds, 1),
                "waiting_seconds": round(agg.waiting_seconds, 1),
                "permission_seconds": round(agg.permission_seconds, 1),
                "state_changes": agg.state_changes,
                "efficiency": round(agg.efficiency, 1),
            },
            "panes": [_state_to_dict(s) for s in self.visible(show_all=True)],
        }


def _state_to_dict(state: PaneState) -> Dict[str, Any]:
    pane = state.pane
    data = {
        "pane_id": pane.id,
        "name": pane.display_name,
        "path": pane.current_path,
        "provider": state.provider,
        "status": state.status,
        "task": state.task,
        "status_since": state.status_since,
        "source": state.source,
        "stats": asdict(state.stats),
    }
    if state.cost is not None:
        data["cost"] = state.cost.to_dict()
    return data


EMPTY_SNAPSHOT = RegistrySnapshot(panes=MappingProxyType({}))


@dataclass(frozen=True)
class RegistryHealth:
    """Outcome of the most recent listing attempts."""
    last_success_at: Optional[float] = None
    last_error: Optional[str] = None
    last_error_at: Optional[float] = None
    consecutive_failures: int = 0

    @property
    def degraded(self) -> bool:
        return self.consecutive_failures > 0


class SessionRegistry:
    """Owner of the current snapshot. Written only by the refresh engine."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot = EMPTY_SNAPSHOT
        self._health = RegistryHealth()

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return self._snapshot

    @property
    def health(self) -> RegistryHealth:
        with self._lock:
            return self._health

    def apply_cycle(
        self,
        panes: Iterable[Pane],
        resolutions: Mapping[str, Resolution],
        costs: Optional[Mapping[str, CostOutcome]] = None,
        now: Optional[float] = None,
    ) -> List[TransitionEvent]:
        """Merge one cycle's results and swap in the new snapshot.

        Returns transition events for panes whose status changed.
        """
        now = self._clock() if now is None else now
        previous = self.snapshot()
        costs = costs or {}

        new_states: Dict[str, PaneState] = {}
        events: List[TransitionEvent] = []
        for pane in panes:
            old = previous.panes.get(pane.id)
            if old is not None and not is_same_process(old, pane):
                old = None
            state = merge_pane_state(old, pane, resolutions.get(pane.id, NOT_DETECTED), now)
            outcome = costs.get(pane.id)
            if outcome is not None:
                state = attach_cost(state, outcome, now)
            new_states[pane.id] = state

            event = build_event(old, state, now)
            if event is not None:
                events.append(event)

        snapshot = RegistrySnapshot(
            panes=MappingProxyType(new_states),
            taken_at=now,
            cycle=previous.cycle + 1,
        )
        with self._lock:
            self._snapshot = snapshot
            self._health = RegistryHealth(last_success_at=now)
        return events

    def record_failure(self, error: Exception, now: Optional[float] = None) -> None:
        """Note a failed listing. The snapshot is left exactly as it was."""
        now = self._clock() if now is None else now
        with self._lock:
            self._health = replace(
                self._health,
                last_error=str(error) or type(error).__name__,
                last_error_at=now,
                consecutive_failures=self._health.consecutive_failures + 1,
            )

    def export_json(self, path) -> None:
        """Write the current snapshot (with stats) as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.snapshot().to_dict(), indent=2))
