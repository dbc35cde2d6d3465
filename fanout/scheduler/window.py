"""Reminder window evaluation.

A tick evaluated at ``now`` owns the half-open window ``[now, now + window)``.
A reminder with offset ``o`` for an event starting at ``T`` is due in exactly
the tick whose window contains ``T - o``. As long as the window width equals
the polling interval and ticks are contiguous, consecutive windows tile the
timeline and every reminder is due in exactly one tick, without any record of
what was already fired.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fanout.domain.exceptions import MalformedEventError
from fanout.domain.models import MAX_REMINDER_TIERS, ScheduledEvent

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class DueReminder:
    """One reminder offset of one event that is due in the current tick.

    Attributes:
        event: The scheduled event, as read at tick time
        tier: 1-based position of the offset in the event's reminder offsets
        offset: Lead time before the event start
    """

    event: ScheduledEvent
    tier: int
    offset: timedelta

    @property
    def due_at(self) -> datetime:
        return self.event.starts_at - self.offset


def is_due(
    target: datetime,
    offset: Optional[timedelta],
    now: datetime,
    window: timedelta,
) -> bool:
    """Decide whether a single reminder offset fires in the window starting at ``now``.

    Args:
        target: Event start instant
        offset: Lead time before the start; None or zero means "not configured"
        now: Start of the tick's window
        window: Window width, equal to the polling interval

    Returns:
        True when ``target - offset`` lies in ``[now, now + window)`` and the
        event has not started yet

    Raises:
        ValueError: If the window is not positive
    """
    if window <= timedelta(0):
        raise ValueError(f"Window must be positive, got {window}")

    if not offset:
        return False

    if target < now:
        return False

    due_at = target - offset
    return now <= due_at < now + window


def due_reminders(
    event: ScheduledEvent,
    now: datetime,
    window: timedelta,
) -> List[DueReminder]:
    """Return every reminder of ``event`` that is due in this tick.

    Offsets are evaluated independently. When two offsets fall into the same
    window (offsets configured close together, or equal) both are returned as
    separate tiers.

    Args:
        event: Scheduled event as read at tick time
        now: Start of the tick's window
        window: Window width

    Returns:
        Due reminders ordered by tier

    Raises:
        MalformedEventError: If the event has no start instant, a negative
            offset, or more offsets than reminder tiers
    """
    if event.starts_at is None:
        raise MalformedEventError(f"Event {event.id} has no start time", event_id=event.id)

    if len(event.reminder_offsets) > MAX_REMINDER_TIERS:
        raise MalformedEventError(
            f"Event {event.id} has {len(event.reminder_offsets)} reminder offsets; "
            f"at most {MAX_REMINDER_TIERS} are supported",
            event_id=event.id,
        )

    for offset in event.reminder_offsets:
        if offset is not None and offset < timedelta(0):
            raise MalformedEventError(
                f"Event {event.id} has a negative reminder offset ({offset})",
                event_id=event.id,
            )

    return [
        DueReminder(event=event, tier=tier, offset=offset)
        for tier, offset in enumerate(event.reminder_offsets, start=1)
        if is_due(event.starts_at, offset, now, window)
    ]


def window_start_for(instant: datetime, window: timedelta) -> datetime:
    """Floor an instant to the window grid anchored at the Unix epoch.

    Scheduler ticks that start a little late still evaluate the window they
    were scheduled for, so the windows of consecutive ticks stay contiguous.

    Example:
        >>> window_start_for(datetime(2025, 1, 9, 10, 3, 17, tzinfo=timezone.utc),
        ...                  timedelta(minutes=5))
        datetime.datetime(2025, 1, 9, 10, 0, tzinfo=datetime.timezone.utc)
    """
    if window <= timedelta(0):
        raise ValueError(f"Window must be positive, got {window}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    elapsed = instant.astimezone(timezone.utc) - _EPOCH
    return instant.astimezone(timezone.utc) - (elapsed % window)
