"""Data models for dispatcher execution tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class EventDispatchStats:
    """
    Statistics for a single scheduled event within a tick.

    Attributes:
        event_id: Identifier of the scheduled event
        due_tiers: Reminder tiers due in this tick's window
        retried_tiers: Tiers carried over from an earlier failed tick
        recipient_count: Size of the resolved audience
        records_built: Number of records handed to the sink
        written_count: Number of records the sink actually stored
        skipped: Whether the event was skipped as malformed
        had_errors: Whether the event failed and was queued for retry
        error_message: Optional error message if the event failed or was skipped
        duration_seconds: Time spent processing this event
    """

    event_id: str
    due_tiers: Tuple[int, ...] = ()
    retried_tiers: Tuple[int, ...] = ()
    recipient_count: int = 0
    records_built: int = 0
    written_count: int = 0
    skipped: bool = False
    had_errors: bool = False
    error_message: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def tiers(self) -> Tuple[int, ...]:
        """All tiers processed for the event, due and retried."""
        return tuple(sorted(set(self.due_tiers) | set(self.retried_tiers)))


@dataclass
class TickResult:
    """
    Aggregate results from one dispatcher tick.

    Attributes:
        run_id: Identifier shared by every log line of the tick
        now: Start of the evaluated window
        window_seconds: Width of the evaluated window
        run_started_at: UTC timestamp when the tick began
        run_finished_at: UTC timestamp when the tick completed
        total_duration_seconds: Total time for the tick
        events_considered: Upcoming events loaded from the data source
        reminders_due: Number of (event, tier) reminders processed
        notifications_written: Records actually stored by the sink
        events_failed: Events that failed and were queued for retry
        events_skipped: Malformed events that were skipped
        event_stats: Per-event statistics for events with work to do
        had_errors: Whether anything failed (including loading events)
        error_message: Optional error message when loading events failed
    """

    run_id: str
    now: datetime
    window_seconds: int
    run_started_at: datetime
    run_finished_at: datetime
    total_duration_seconds: float = 0.0
    events_considered: int = 0
    reminders_due: int = 0
    notifications_written: int = 0
    events_failed: int = 0
    events_skipped: int = 0
    event_stats: List[EventDispatchStats] = field(default_factory=list)
    had_errors: bool = False
    error_message: Optional[str] = None

    def __post_init__(self):
        """Compute aggregate statistics from event stats if not already set."""
        if self.event_stats and self.notifications_written == 0:
            self.reminders_due = sum(len(s.tiers) for s in self.event_stats)
            self.notifications_written = sum(s.written_count for s in self.event_stats)
            self.events_failed = sum(1 for s in self.event_stats if s.had_errors)
            self.events_skipped = sum(1 for s in self.event_stats if s.skipped)
            self.had_errors = self.had_errors or self.events_failed > 0

        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()


@dataclass
class ContentDispatchResult:
    """
    Result of fanning out one content event.

    Attributes:
        post_id: Identifier of the published post
        actor_id: User who published it
        recipient_count: Size of the resolved audience
        notifications_written: Records actually stored (0 on a repeated trigger)
    """

    post_id: str
    actor_id: str
    recipient_count: int = 0
    notifications_written: int = 0
