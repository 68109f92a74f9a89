"""
Tests for the pure helpers behind the refresh engine.
"""

import pytest

from panewatch.engine_core import (
    PaneStats,
    accumulate_time,
    aggregate_stats,
    compute_next_delay,
    count_statuses,
    format_cycle_summary,
    select_visible,
)
from panewatch.registry import PaneState
from panewatch.status_constants import (
    STATUS_NOT_DETECTED,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
)
from tests.fixtures import make_pane


class TestComputeNextDelay:
    """Test cycle scheduling"""

    @pytest.mark.parametrize("interval,elapsed,min_gap,expected", [
        (2.0, 0.5, 1.0, 1.5),
        (2.0, 0.0, 1.0, 2.0),
        (2.0, 1.5, 1.0, 1.0),
        (2.0, 5.0, 1.0, 1.0),
        (2.0, -1.0, 1.0, 2.0),
        (2.0, 3.0, 0.0, 0.0),
    ])
    def test_delay(self, interval, elapsed, min_gap, expected):
        assert compute_next_delay(interval, elapsed, min_gap) == pytest.approx(expected)


class TestAccumulateTime:
    """Time is credited to the status held since the last observation"""

    def test_working_time(self):
        stats = accumulate_time(PaneStats(), STATUS_WORKING, STATUS_WORKING, 2.0)
        assert stats.working_seconds == 2.0
        assert stats.state_changes == 0

    def test_change_credits_previous_status(self):
        stats = accumulate_time(PaneStats(), STATUS_WORKING, STATUS_WAITING_INPUT, 3.0)
        assert stats.working_seconds == 3.0
        assert stats.waiting_seconds == 0.0
        assert stats.state_changes == 1

    def test_permission_time(self):
        stats = accumulate_time(PaneStats(), STATUS_PERMISSION, STATUS_PERMISSION, 4.0)
        assert stats.permission_seconds == 4.0

    def test_not_detected_not_tracked(self):
        stats = accumulate_time(PaneStats(), STATUS_NOT_DETECTED, STATUS_NOT_DETECTED, 10.0)
        assert stats.tracked_seconds == 0.0

    def test_step_capped(self):
        stats = accumulate_time(PaneStats(), STATUS_WORKING, STATUS_WORKING, 3600.0, max_elapsed=60.0)
        assert stats.working_seconds == 60.0

    def test_negative_elapsed_ignored(self):
        stats = accumulate_time(PaneStats(), STATUS_WORKING, STATUS_WORKING, -5.0)
        assert stats.working_seconds == 0.0


class TestAggregate:
    """Test aggregate_stats and efficiency"""

    def test_sums(self):
        agg = aggregate_stats([
            PaneStats(working_seconds=30, waiting_seconds=10, state_changes=2),
            PaneStats(working_seconds=30, permission_seconds=30, state_changes=1),
        ])
        assert agg.working_seconds == 60
        assert agg.state_changes == 3
        assert agg.pane_count == 2
        assert agg.efficiency == pytest.approx(60.0)

    def test_empty(self):
        agg = aggregate_stats([])
        assert agg.pane_count == 0
        assert agg.efficiency == 0.0


class TestVisible:
    """Ordering and filtering for display"""

    def _state(self, id, status, session="agents", window=0):
        return PaneState(
            pane=make_pane(id=id, session_name=session, window_index=window),
            provider="claude", status=status, status_since=0, last_seen=0,
        )

    def test_attention_first(self):
        states = [
            self._state("%1", STATUS_WAITING_INPUT),
            self._state("%2", STATUS_WORKING),
            self._state("%3", STATUS_PERMISSION),
        ]
        assert [s.pane_id for s in select_visible(states)] == ["%3", "%2", "%1"]

    def test_position_breaks_ties(self):
        states = [
            self._state("%1", STATUS_WORKING, window=2),
            self._state("%2", STATUS_WORKING, window=1),
            self._state("%3", STATUS_WORKING, session="aaa", window=5),
        ]
        assert [s.pane_id for s in select_visible(states)] == ["%3", "%2", "%1"]

    def test_not_detected_hidden_unless_show_all(self):
        states = [self._state("%1", STATUS_NOT_DETECTED), self._state("%2", STATUS_WORKING)]
        assert [s.pane_id for s in select_visible(states)] == ["%2"]
        assert [s.pane_id for s in select_visible(states, show_all=True)] == ["%2", "%1"]


class TestSummary:
    """Test the per-cycle log line"""

    def test_counts_every_status(self):
        counts = count_statuses([STATUS_WORKING, STATUS_WORKING, STATUS_PERMISSION])
        assert counts == {
            STATUS_WORKING: 2,
            STATUS_WAITING_INPUT: 0,
            STATUS_PERMISSION: 1,
            STATUS_NOT_DETECTED: 0,
        }

    def test_format(self):
        counts = count_statuses([STATUS_WORKING, STATUS_WAITING_INPUT, STATUS_NOT_DETECTED])
        line = format_cycle_summary(7, counts, 0.123, 1.9)
        assert line == "Cycle #7: 2 agents (1 working, 1 waiting, 0 permission), took 0.12s, next in 1.9s"
