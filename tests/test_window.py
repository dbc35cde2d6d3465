"""Unit tests for reminder window evaluation.

Tests cover:
- Half-open window boundaries of is_due
- Unconfigured (None/zero) offsets and started events
- Window tiling: every reminder is due in exactly one of consecutive ticks
- Double-due: two tiers falling into the same window
- Malformed events
- Grid alignment of tick instants
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from fanout.domain.exceptions import MalformedEventError
from fanout.domain.models import ScheduledEvent
from fanout.scheduler.window import DueReminder, due_reminders, is_due, window_start_for

T = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
W = timedelta(minutes=5)


def make_event(offsets, starts_at=T, event_id="evt-1"):
    return ScheduledEvent(
        id=event_id,
        creator_id="creator-1",
        title="Hiring in 2025",
        starts_at=starts_at,
        reminder_offsets=offsets,
    )


class TestIsDue:
    """Tests for is_due."""

    def test_due_at_window_start(self):
        """Test a reminder due exactly at the window start fires."""
        assert is_due(T, timedelta(minutes=60), T - timedelta(minutes=60), W)

    def test_not_due_at_window_end(self):
        """Test the window end is exclusive."""
        now = T - timedelta(minutes=60) - W
        assert not is_due(T, timedelta(minutes=60), now, W)

    def test_due_inside_window(self):
        """Test a reminder due mid-window fires."""
        now = T - timedelta(minutes=62)
        assert is_due(T, timedelta(minutes=60), now, W)

    def test_not_due_before_window(self):
        """Test a reminder due after the window does not fire yet."""
        now = T - timedelta(minutes=120)
        assert not is_due(T, timedelta(minutes=60), now, W)

    def test_none_offset_never_due(self):
        """Test an unconfigured offset is never due."""
        assert not is_due(T, None, T - timedelta(minutes=60), W)

    def test_zero_offset_never_due(self):
        """Test a zero offset is treated as unconfigured."""
        assert not is_due(T, timedelta(0), T, W)

    def test_started_event_never_due(self):
        """Test nothing fires once the event has started."""
        now = T + timedelta(minutes=1)
        for minutes in (1, 5, 60, 1440):
            assert not is_due(T, timedelta(minutes=minutes), now, W)

    def test_event_starting_now_still_evaluated(self):
        """Test target == now is not considered past."""
        # due_at is before now, so still not due, but no error either
        assert not is_due(T, timedelta(minutes=1), T, W)

    @pytest.mark.parametrize("window", [timedelta(0), timedelta(minutes=-5)])
    def test_non_positive_window_raises(self, window):
        """Test a zero or negative window is rejected."""
        with pytest.raises(ValueError, match="Window must be positive"):
            is_due(T, timedelta(minutes=60), T - timedelta(minutes=60), window)


class TestWindowTiling:
    """Consecutive ticks partition the timeline."""

    def test_each_reminder_due_in_exactly_one_tick(self):
        """Test random (target, offset, grid) cases fire exactly once."""
        rng = random.Random(20250110)
        origin = datetime(2025, 1, 1, tzinfo=timezone.utc)

        for _ in range(200):
            target = origin + timedelta(days=3, seconds=rng.randrange(0, 7 * 24 * 3600))
            offset = timedelta(minutes=rng.randint(1, 2 * 24 * 60))
            grid_start = origin + timedelta(seconds=rng.randrange(0, 300))

            ticks = []
            now = grid_start
            while now <= target + W:
                ticks.append(now)
                now += W

            fired = [tick for tick in ticks if is_due(target, offset, tick, W)]

            assert len(fired) == 1, (target, offset, grid_start)
            assert fired[0] <= target - offset < fired[0] + W

    def test_tiling_holds_for_other_window_widths(self):
        """Test tiling with a coarser window."""
        rng = random.Random(7)
        window = timedelta(minutes=15)
        origin = window_start_for(datetime(2025, 3, 1, tzinfo=timezone.utc), window)

        for _ in range(50):
            target = origin + timedelta(days=2, minutes=rng.randrange(0, 3 * 24 * 60))
            offset = timedelta(minutes=rng.choice([5, 15, 30, 60, 1440]))
            fired = [
                origin + k * window
                for k in range(0, 6 * 24 * 4)
                if is_due(target, offset, origin + k * window, window)
            ]
            assert len(fired) == 1


class TestDueReminders:
    """Tests for due_reminders."""

    def test_scenario_day_before(self):
        """Test the 24h reminder fires 24h before the start."""
        event = make_event([timedelta(minutes=60), timedelta(minutes=1440)])

        due = due_reminders(event, datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc), W)

        assert [(r.tier, r.offset) for r in due] == [(2, timedelta(minutes=1440))]

    def test_scenario_hour_before(self):
        """Test the 1h reminder fires an hour before the start."""
        event = make_event([timedelta(minutes=60), timedelta(minutes=1440)])

        due = due_reminders(event, datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc), W)

        assert len(due) == 1
        assert due[0].tier == 1
        assert due[0].due_at == datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)

    def test_scenario_tick_before_window(self):
        """Test the tick just before the due instant fires nothing."""
        event = make_event([timedelta(minutes=60), timedelta(minutes=1440)])

        assert due_reminders(event, datetime(2025, 1, 9, 9, 55, tzinfo=timezone.utc), W) == []

    def test_past_event_yields_nothing(self):
        """Test an event that already started produces no reminders."""
        event = make_event([timedelta(minutes=60), timedelta(minutes=1440)])

        assert due_reminders(event, T + timedelta(minutes=1), W) == []

    def test_double_due_returns_both_tiers(self):
        """Test two offsets due in the same window surface as two tiers."""
        event = make_event([timedelta(minutes=10), timedelta(minutes=12)])
        now = T - timedelta(minutes=14)

        due = due_reminders(event, now, W)

        assert [r.tier for r in due] == [1, 2]

    def test_equal_offsets_both_fire(self):
        """Test identical offsets are not collapsed."""
        event = make_event([timedelta(minutes=30), timedelta(minutes=30)])

        due = due_reminders(event, T - timedelta(minutes=30), W)

        assert [r.tier for r in due] == [1, 2]

    def test_unconfigured_slots_skipped(self):
        """Test None and zero slots never produce reminders."""
        event = make_event([None, timedelta(minutes=60)])

        due = due_reminders(event, T - timedelta(minutes=60), W)

        assert due == [DueReminder(event=event, tier=2, offset=timedelta(minutes=60))]

    def test_no_offsets(self):
        """Test an event without reminders yields nothing."""
        assert due_reminders(make_event([]), T - timedelta(minutes=60), W) == []

    def test_missing_start_is_malformed(self):
        """Test an event without start instant is rejected."""
        event = make_event([timedelta(minutes=60)], starts_at=None)

        with pytest.raises(MalformedEventError) as exc_info:
            due_reminders(event, T, W)

        assert exc_info.value.event_id == "evt-1"

    def test_negative_offset_is_malformed(self):
        """Test a negative offset is rejected."""
        event = make_event([timedelta(minutes=-5)])

        with pytest.raises(MalformedEventError, match="negative"):
            due_reminders(event, T - timedelta(minutes=60), W)

    def test_too_many_offsets_is_malformed(self):
        """Test more than two offsets is rejected."""
        event = make_event([timedelta(minutes=5), timedelta(minutes=10), timedelta(minutes=15)])

        with pytest.raises(MalformedEventError, match="at most 2"):
            due_reminders(event, T - timedelta(minutes=60), W)


class TestWindowStartFor:
    """Tests for window_start_for."""

    def test_floors_to_grid(self):
        """Test instants are floored to the window grid."""
        instant = datetime(2025, 1, 9, 10, 3, 17, 500, tzinfo=timezone.utc)

        assert window_start_for(instant, W) == datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc)

    def test_grid_instant_unchanged(self):
        """Test an instant on the grid maps to itself."""
        assert window_start_for(T, W) == T

    def test_naive_treated_as_utc(self):
        """Test naive datetimes are interpreted as UTC."""
        naive = datetime(2025, 1, 9, 10, 7)

        assert window_start_for(naive, W) == datetime(2025, 1, 9, 10, 5, tzinfo=timezone.utc)

    def test_other_timezone_converted(self):
        """Test aware datetimes in other zones are converted to UTC."""
        cet = timezone(timedelta(hours=1))
        instant = datetime(2025, 1, 9, 11, 4, tzinfo=cet)

        assert window_start_for(instant, W) == datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc)

    def test_late_ticks_keep_windows_contiguous(self):
        """Test ticks that start late still evaluate consecutive windows."""
        starts = [T + k * W + timedelta(seconds=s) for k, s in enumerate([0, 3, 41, 12, 299])]

        windows = [window_start_for(s, W) for s in starts]

        assert windows == [T + k * W for k in range(5)]

    def test_non_positive_window_raises(self):
        with pytest.raises(ValueError):
            window_start_for(T, timedelta(0))
