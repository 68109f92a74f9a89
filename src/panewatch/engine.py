"""
Refresh engine: drives one status cycle every few seconds.

Each cycle runs strictly in sequence:

    idle -> listing -> resolving -> merging -> scheduled -> idle

- listing: one batched pane listing. If it fails the registry snapshot is
  left untouched and the cycle ends (degraded).
- resolving: panes are resolved on a fixed pool of K workers, so at most
  1 + K external commands are ever in flight. Explicitly requested cost
  fetches share the same pool.
- merging: the registry swaps in a new snapshot and transition events are
  delivered to subscribers.
- scheduled: wait max(interval - elapsed, min_gap), interruptible by stop().
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Dict, List, Optional, Set

from .cost import CostOnDemand
from .engine_core import compute_next_delay, format_cycle_summary
from .errors import CostError, SourceUnavailable
from .logging_config import get_logger
from .pane_source import Pane, TmuxPaneSource
from .process_runner import ProcessRunner
from .protocols import CommandRunner, CostFetcher, PaneSource
from .registry import CostOutcome, PaneState, SessionRegistry
from .settings import MonitorSettings
from .status_constants import PROVIDER_NONE, STATUS_NOT_DETECTED
from .status_resolver import SOURCE_ERROR, Resolution, StatusResolver
from .transitions import TransitionEvent, TransitionObserver


log = get_logger(__name__)

PHASE_IDLE = "idle"
PHASE_LISTING = "listing"
PHASE_RESOLVING = "resolving"
PHASE_MERGING = "merging"
PHASE_SCHEDULED = "scheduled"

ERROR_RESOLUTION = Resolution(provider=PROVIDER_NONE, status=STATUS_NOT_DETECTED, source=SOURCE_ERROR)


class RefreshEngine:
    """Periodic acquisition of pane status into a SessionRegistry.

    Args:
        source: Pane enumeration (one call per cycle)
        resolver: Per-pane status resolution
        registry: Destination for cycle results
        settings: Interval, min gap and worker count
        runner: Runner whose children are killed on stop()
        cost: Cost fetcher used for explicit cost requests
        owns_runner: Close the runner on stop(), so no worker can start a
            new command after shutdown

    Raises:
        ConfigError: settings are unusable (e.g. non-positive interval)
    """

    def __init__(
        self,
        source: PaneSource,
        resolver: StatusResolver,
        registry: SessionRegistry,
        settings: Optional[MonitorSettings] = None,
        runner: Optional[CommandRunner] = None,
        cost: Optional[CostFetcher] = None,
        clock: Callable[[], float] = time.monotonic,
        owns_runner: bool = False,
    ):
        self.settings = (settings or MonitorSettings()).validate()
        self.source = source
        self.resolver = resolver
        self.registry = registry
        self.runner = runner
        self.cost = cost
        self.owns_runner = owns_runner
        self._clock = clock

        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.max_probe_workers,
            thread_name_prefix="panewatch-probe",
        )
        self._observers: List[TransitionObserver] = []
        self._lock = threading.Lock()
        self._cost_requests: Set[str] = set()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.phase = PHASE_IDLE
        self.cycle_count = 0
        self.last_cycle_duration = 0.0

    @classmethod
    def from_settings(cls, settings: MonitorSettings) -> "RefreshEngine":
        """Wire up the real tmux-backed collaborators."""
        settings = settings.validate()
        # One slot for the listing plus one per worker
        runner = ProcessRunner(
            default_timeout=settings.probe_timeout,
            max_concurrent=settings.max_probe_workers + 1,
        )
        source = TmuxPaneSource(runner, timeout=settings.list_timeout, socket=settings.tmux_socket)
        resolver = StatusResolver(runner, settings)
        cost = CostOnDemand(settings, cwd_lookup=resolver.get_cwd)
        return cls(source, resolver, SessionRegistry(), settings=settings, runner=runner, cost=cost,
                   owns_runner=True)

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def subscribe(self, observer: TransitionObserver) -> Callable[[], None]:
        """Register a transition observer. Returns an unsubscribe function."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def request_cost(self, pane_id: str) -> None:
        """Queue a cost fetch for a pane; the result lands in the next snapshot."""
        with self._lock:
            self._cost_requests.add(pane_id)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> List[TransitionEvent]:
        """Run one full cycle synchronously. Returns the transition events."""
        started = self._clock()

        self.phase = PHASE_LISTING
        try:
            panes = self.source.list()
        except SourceUnavailable as e:
            self.registry.record_failure(e)
            failures = self.registry.health.consecutive_failures
            log.warning("Pane listing unavailable (%d in a row), keeping last snapshot: %s", failures, e)
            self.phase = PHASE_IDLE
            self.last_cycle_duration = self._clock() - started
            return []

        self.phase = PHASE_RESOLVING
        resolutions, costs = self._resolve_all(panes)

        self.phase = PHASE_MERGING
        events = self.registry.apply_cycle(panes, resolutions, costs)
        self._deliver(events)

        self.cycle_count += 1
        self.last_cycle_duration = self._clock() - started
        self.phase = PHASE_IDLE

        snapshot = self.registry.snapshot()
        log.info(format_cycle_summary(
            snapshot.cycle,
            snapshot.counts(),
            self.last_cycle_duration,
            compute_next_delay(self.settings.interval, self.last_cycle_duration, self.settings.min_gap),
        ))
        return events

    def _resolve_all(self, panes: List[Pane]):
        """Resolve every pane (and pending cost requests) on the worker pool."""
        futures = {pane.id: self._pool.submit(self.resolver.resolve, pane) for pane in panes}

        cost_futures = {}
        for state in self._take_cost_requests(panes):
            cost_futures[state.pane_id] = self._pool.submit(self._fetch_cost, state)

        resolutions: Dict[str, Resolution] = {}
        for pane in panes:
            try:
                resolutions[pane.id] = futures[pane.id].result()
            except Exception as e:
                log.debug("resolve failed for %s: %s", pane.id, e)
                resolutions[pane.id] = ERROR_RESOLUTION

        costs: Dict[str, CostOutcome] = {}
        for pane_id, future in cost_futures.items():
            try:
                costs[pane_id] = future.result(timeout=self.settings.cost_timeout)
            except FutureTimeout:
                log.debug("cost for %s timed out after %.1fs", pane_id, self.settings.cost_timeout)
                costs[pane_id] = CostOutcome(error=f"timed out after {self.settings.cost_timeout:g}s")
            except Exception as e:
                costs[pane_id] = CostOutcome(error=str(e) or type(e).__name__)
        return resolutions, costs

    def _take_cost_requests(self, panes: List[Pane]) -> List[PaneState]:
        with self._lock:
            requested, self._cost_requests = self._cost_requests, set()
        if not requested or self.cost is None:
            return []
        listed = {pane.id for pane in panes}
        snapshot = self.registry.snapshot()
        states = []
        for pane_id in requested:
            state = snapshot.get(pane_id)
            if state is not None and pane_id in listed:
                states.append(state)
        return states

    def _fetch_cost(self, state: PaneState) -> CostOutcome:
        try:
            return CostOutcome(figure=self.cost.fetch_cost(state))
        except CostError as e:
            log.debug("cost unavailable for %s: %s", state.pane_id, e)
            return CostOutcome(error=str(e))

    def _deliver(self, events: List[TransitionEvent]) -> None:
        with self._lock:
            observers = list(self._observers)
        for event in events:
            log.debug("%s: %s -> %s (%s)", event.display_name, event.previous_status,
                      event.new_status, event.kind.value)
            for observer in observers:
                try:
                    observer(event)
                except Exception:
                    log.exception("Transition observer failed for %s", event.display_name)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Cycle until stop() is called."""
        log.info(
            "Refresh engine started (interval=%.1fs, workers=%d, legacy=%s)",
            self.settings.interval, self.settings.max_probe_workers, self.settings.legacy_probes,
        )
        while not self._stop_event.is_set():
            started = self._clock()
            try:
                self.run_cycle()
            except Exception:
                self.phase = PHASE_IDLE
                if self._stop_event.is_set():
                    # Pool was shut down under us
                    break
                log.exception("Unexpected error in refresh cycle")
            if self._stop_event.is_set():
                break
            delay = compute_next_delay(
                self.settings.interval, self._clock() - started, self.settings.min_gap
            )
            self.phase = PHASE_SCHEDULED
            self._stop_event.wait(delay)
            self.phase = PHASE_IDLE
        log.info("Refresh engine stopped after %d cycles", self.cycle_count)

    def start(self) -> threading.Thread:
        """Run the loop on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="panewatch-refresh", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop, kill in-flight commands and release the pool."""
        self._stop_event.set()
        if self.runner is not None:
            if self.owns_runner:
                self.runner.close()
            else:
                self.runner.cancel_all()
        self._pool.shutdown(wait=False, cancel_futures=True)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self.phase = PHASE_IDLE

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
