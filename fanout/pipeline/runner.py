"""Dispatcher orchestration for reminder ticks and content fan-out."""

import contextvars
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set
from uuid import uuid4

from fanout.audience.exceptions import DataSourceUnavailableError
from fanout.audience.resolver import RecipientResolver
from fanout.audience.sources import DataSource
from fanout.config.models import AppConfig
from fanout.domain.exceptions import MalformedEventError
from fanout.domain.models import ContentEvent, NotificationRecord, ReminderEvent, ScheduledEvent
from fanout.logging import get_logger
from fanout.logging.context import log_context
from fanout.notifications.models import NotificationTemplateError, SinkWriteError
from fanout.notifications.payloads import build_content_records, build_reminder_records
from fanout.notifications.sink import NotificationSink
from fanout.notifications.templates import TemplateRenderer
from fanout.scheduler.window import DueReminder, due_reminders
from fanout.utils.timestamps import ensure_utc, format_timestamp, utc_now

from .models import ContentDispatchResult, EventDispatchStats, TickResult

logger = get_logger(__name__, component="dispatcher")


class FanoutDispatcher:
    """
    Runs reminder ticks and fans out content events.

    A tick loads upcoming events, asks the window evaluator which reminder
    tiers are due, resolves each event's audience once and writes one batch of
    records per event. Nothing about previous ticks is persisted: the sink's
    uniqueness constraint absorbs duplicates from overlapping or retried ticks.

    Tiers of events that failed (data source or sink unavailable) are kept in
    an in-process retry queue and re-attempted by later ticks for as long as
    the event is still upcoming.
    """

    def __init__(
        self,
        data_source: DataSource,
        sink: NotificationSink,
        app_config: AppConfig,
        renderer: Optional[TemplateRenderer] = None,
        resolver: Optional[RecipientResolver] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            data_source: Source of events, follows, affiliations and registrations
            sink: Destination of notification records
            app_config: Application configuration
            renderer: Template renderer (defaults to one built from configuration)
            resolver: Recipient resolver (defaults to one over ``data_source``)
        """
        self.data_source = data_source
        self.sink = sink
        self.app_config = app_config
        self.window = app_config.window
        self.renderer = renderer or TemplateRenderer(app_config.notifications.templates)
        self.resolver = resolver or RecipientResolver(data_source)

        self._retry_lock = threading.Lock()
        self._pending_retries: Dict[str, Set[int]] = {}

    @property
    def pending_retries(self) -> Dict[str, Set[int]]:
        """Snapshot of queued retries: event id -> reminder tiers."""
        with self._retry_lock:
            return {event_id: set(tiers) for event_id, tiers in self._pending_retries.items()}

    def run_tick(self, now: Optional[datetime] = None) -> TickResult:
        """
        Execute one polling cycle over the window ``[now, now + window)``.

        This method:
        1. Loads events starting at or after ``now``
        2. Drops queued retries of events that are no longer upcoming
        3. Processes events in parallel: due tiers plus retried tiers,
           one audience resolution and one sink batch per event
        4. Aggregates per-event statistics

        Args:
            now: Start of the window (defaults to the current time)

        Returns:
            TickResult with aggregate counts and per-event stats

        Raises:
            No exceptions are raised for per-event failures; they are captured
            in the result and logged.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        run_id = uuid4().hex
        run_started_at = utc_now()

        with log_context(run_id=run_id):
            logger.info(
                "Tick started",
                extra={
                    "event": "tick.started",
                    "window_start": format_timestamp(now),
                    "window_seconds": self.app_config.poll_interval_seconds,
                },
            )

            try:
                candidates = self.data_source.get_upcoming_events(now)
            except DataSourceUnavailableError as e:
                logger.error(
                    f"Could not load upcoming events: {e}",
                    extra={"event": "tick.events.load_failed", "source": e.source},
                )
                return TickResult(
                    run_id=run_id,
                    now=now,
                    window_seconds=self.app_config.poll_interval_seconds,
                    run_started_at=run_started_at,
                    run_finished_at=utc_now(),
                    had_errors=True,
                    error_message=str(e),
                )

            # Events without a start instant stay in so they are reported as malformed
            events = [e for e in candidates if e.starts_at is None or e.starts_at >= now]
            self._prune_retries(event.id for event in events)

            event_stats = [s for s in self._process_events(events, now) if s is not None]

            result = TickResult(
                run_id=run_id,
                now=now,
                window_seconds=self.app_config.poll_interval_seconds,
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                events_considered=len(candidates),
                event_stats=event_stats,
            )

            logger.info(
                "Tick completed",
                extra={
                    "event": "tick.completed",
                    "duration_ms": int(result.total_duration_seconds * 1000),
                    "events_considered": result.events_considered,
                    "reminders_due": result.reminders_due,
                    "notifications_written": result.notifications_written,
                    "events_failed": result.events_failed,
                    "events_skipped": result.events_skipped,
                    "had_errors": result.had_errors,
                },
            )

            return result

    def dispatch_content(self, event: ContentEvent, now: Optional[datetime] = None) -> ContentDispatchResult:
        """
        Notify the audience of a newly published post.

        A repeated call for the same post writes nothing new.

        Args:
            event: Content event descriptor
            now: Creation timestamp of the records (defaults to the current time)

        Returns:
            ContentDispatchResult with audience size and written count

        Raises:
            DataSourceUnavailableError: If the audience or actor name cannot be read
            NotificationTemplateError: If a template fails to render
            SinkWriteError: If the sink rejects the batch
        """
        now = ensure_utc(now) if now is not None else utc_now()

        with log_context(post_id=event.post_id, actor_id=event.actor_id):
            audience = self.resolver.resolve(event)
            result = ContentDispatchResult(
                post_id=event.post_id,
                actor_id=event.actor_id,
                recipient_count=len(audience),
            )

            if audience:
                actor_name = (
                    self.data_source.get_display_name(event.actor_id)
                    or self.app_config.notifications.default_actor_name
                )
                records = build_content_records(event, audience, actor_name, now, self.renderer)
                result.notifications_written = self.sink.insert_many(records)

            logger.info(
                f"Content event fanned out to {result.recipient_count} recipients",
                extra={
                    "event": "content.dispatched",
                    "organization_id": event.organization_id,
                    "recipient_count": result.recipient_count,
                    "notifications_written": result.notifications_written,
                },
            )

            return result

    def _process_events(
        self, events: List[ScheduledEvent], now: datetime
    ) -> List[Optional[EventDispatchStats]]:
        max_workers = min(self.app_config.dispatcher.max_workers, len(events))
        if max_workers <= 1:
            return [self._process_event(event, now) for event in events]

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fanout") as executor:
            # Each task runs in a copy of the tick's context so run_id reaches its logs
            futures = [
                executor.submit(contextvars.copy_context().run, self._process_event, event, now)
                for event in events
            ]
            return [future.result() for future in futures]

    def _process_event(self, event: ScheduledEvent, now: datetime) -> Optional[EventDispatchStats]:
        """
        Process one event; returns None when it has nothing due.

        Never raises: failures are recorded in the returned stats.
        """
        event_start = time.time()

        with log_context(event_id=event.id):
            stats = EventDispatchStats(event_id=event.id)

            try:
                due = due_reminders(event, now, self.window)
            except MalformedEventError as e:
                self._discard_retries(event.id)
                return self._skip_malformed(stats, e, event_start)

            reminders = self._with_retries(event, due)
            if not reminders:
                return None

            stats.due_tiers = tuple(r.tier for r in due)
            stats.retried_tiers = tuple(sorted({r.tier for r in reminders} - set(stats.due_tiers)))

            try:
                audience = self.resolver.resolve(
                    ReminderEvent(event_id=event.id, actor_id=event.audience_actor_id)
                )
                stats.recipient_count = len(audience)

                records: List[NotificationRecord] = []
                for reminder in reminders:
                    records.extend(build_reminder_records(reminder, audience, now, self.renderer))
                stats.records_built = len(records)

                if records:
                    stats.written_count = self.sink.insert_many(records)

            except NotificationTemplateError as e:
                return self._skip_malformed(stats, e, event_start)

            except (DataSourceUnavailableError, SinkWriteError) as e:
                self._fail_event(stats, reminders, e)

            except Exception as e:
                # Unexpected error: still confined to this event
                self._fail_event(stats, reminders, e, exc_info=True)

            stats.duration_seconds = time.time() - event_start

            if not stats.had_errors:
                logger.info(
                    f"Reminders dispatched for tiers {list(stats.tiers)}",
                    extra={
                        "event": "event.dispatched",
                        "tiers": list(stats.tiers),
                        "retried_tiers": list(stats.retried_tiers),
                        "recipient_count": stats.recipient_count,
                        "notifications_written": stats.written_count,
                    },
                )

            return stats

    def _skip_malformed(self, stats: EventDispatchStats, error: Exception, event_start: float) -> EventDispatchStats:
        stats.skipped = True
        stats.error_message = str(error)
        stats.duration_seconds = time.time() - event_start
        logger.warning(
            f"Skipping malformed event: {error}",
            extra={"event": "event.malformed", "error_type": type(error).__name__},
        )
        return stats

    def _fail_event(
        self,
        stats: EventDispatchStats,
        reminders: List[DueReminder],
        error: Exception,
        exc_info: bool = False,
    ) -> None:
        stats.had_errors = True
        stats.error_message = str(error)
        retry = self.app_config.dispatcher.retry_failed_events

        if retry:
            with self._retry_lock:
                self._pending_retries.setdefault(stats.event_id, set()).update(r.tier for r in reminders)

        logger.error(
            f"Dispatch failed for event: {error}",
            extra={
                "event": "event.dispatch.failed",
                "error_type": type(error).__name__,
                "tiers": sorted(r.tier for r in reminders),
                "queued_for_retry": retry,
            },
            exc_info=exc_info,
        )

    def _with_retries(self, event: ScheduledEvent, due: List[DueReminder]) -> List[DueReminder]:
        """Merge due reminders with tiers left over from failed ticks."""
        with self._retry_lock:
            retried = self._pending_retries.pop(event.id, set())

        reminders = list(due)
        due_tiers = {r.tier for r in due}
        for tier in sorted(retried - due_tiers):
            if tier > len(event.reminder_offsets):
                continue
            offset = event.reminder_offsets[tier - 1]
            # Offset removed since the failure: nothing left to retry
            if not offset:
                continue
            reminders.append(DueReminder(event=event, tier=tier, offset=offset))

        return sorted(reminders, key=lambda r: r.tier)

    def _prune_retries(self, upcoming_ids: Iterable[str]) -> None:
        upcoming = set(upcoming_ids)
        with self._retry_lock:
            expired = [event_id for event_id in self._pending_retries if event_id not in upcoming]
            for event_id in expired:
                del self._pending_retries[event_id]

        if expired:
            logger.info(
                f"Dropped retries of {len(expired)} events that are no longer upcoming",
                extra={"event": "retry.expired", "event_ids": sorted(expired)},
            )

    def _discard_retries(self, event_id: str) -> None:
        with self._retry_lock:
            self._pending_retries.pop(event_id, None)
