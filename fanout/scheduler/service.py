"""Scheduler service for periodic reminder ticks."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fanout.logging import get_logger
from fanout.utils.timestamps import format_timestamp, utc_now

from .window import window_start_for

logger = get_logger(__name__, component="scheduler")

TICK_JOB_ID = "reminder-tick"
STARTUP_JOB_ID = "reminder-tick-startup"
CATCHUP_JOB_PREFIX = "reminder-tick-catchup-"


class SchedulerService:
    """
    Wraps APScheduler to trigger dispatcher ticks at the poll interval.

    Tick instants are aligned to the window grid (see ``window_start_for``):
    the interval job fires on grid boundaries and each run evaluates the
    window it was scheduled for, even if it starts a little late. Runs may
    overlap up to ``max_instances``; an overlapping tick is harmless because
    the notification sink ignores duplicates.

    A run APScheduler drops (all instances busy, or later than the misfire
    grace time) is re-submitted as a one-off catch-up job for the window of
    its scheduled run time, so every window on the grid is evaluated.
    """

    def __init__(
        self,
        tick_callable: Callable[[datetime], Any],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
        max_instances: int = 2,
    ):
        """
        Initialize the scheduler service.

        Args:
            tick_callable: Function called with the window start on each run
                (e.g., dispatcher.run_tick)
            interval_seconds: Poll interval and window width in seconds
            shutdown_event: Optional event to set on shutdown for coordination
            max_instances: Maximum number of ticks allowed to run concurrently
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.tick_callable = tick_callable
        self.interval_seconds = interval_seconds
        self.window = timedelta(seconds=interval_seconds)
        self.shutdown_event = shutdown_event
        self.max_instances = max_instances

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": max_instances,
                "coalesce": False,  # Every missed window still needs its own tick
                # A run starting within the grace time floors to its own window
                "misfire_grace_time": max(interval_seconds - 1, 1),
            },
            timezone=timezone.utc,
        )
        self.scheduler.add_listener(self._on_skipped_run, EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES)

    def start(self) -> None:
        """
        Start the scheduler and register the tick jobs.

        The window containing the current instant is evaluated immediately;
        subsequent ticks fire on the following grid boundaries.
        """
        now = utc_now()
        current_window = window_start_for(now, self.window)
        next_boundary = current_window + self.window

        trigger = IntervalTrigger(
            seconds=self.interval_seconds,
            start_date=next_boundary,
            timezone=timezone.utc,
        )

        self.scheduler.add_job(
            func=self._run_aligned_tick,
            trigger=trigger,
            id=TICK_JOB_ID,
            name="Reminder dispatch tick",
            replace_existing=True,
        )

        self.scheduler.add_job(
            func=self._run_aligned_tick,
            trigger=DateTrigger(run_date=now, timezone=timezone.utc),
            id=STARTUP_JOB_ID,
            name="Reminder dispatch tick (startup)",
            replace_existing=True,
        )

        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "max_instances": self.max_instances,
                "current_window": format_timestamp(current_window),
                "next_run_time": format_timestamp(next_boundary),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for running ticks to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={
                "event": "scheduler.stopping",
                "wait_for_jobs": wait,
            },
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info(
            "Scheduler shutdown complete",
            extra={"event": "scheduler.stopped"}
        )

    def trigger_now(self) -> Any:
        """
        Run one tick synchronously in the current thread for the current window.

        Returns:
            Whatever the tick callable returns
        """
        logger.info(
            "Triggering immediate tick",
            extra={"event": "scheduler.trigger_now"}
        )
        return self._run_aligned_tick()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled run time of the interval job.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(TICK_JOB_ID)
        return job.next_run_time if job else None

    def catch_up(self, scheduled_run_time: datetime) -> str:
        """
        Submit a one-off tick for the window containing ``scheduled_run_time``.

        Args:
            scheduled_run_time: When the dropped run should have happened

        Returns:
            Id of the catch-up job
        """
        window_start = window_start_for(scheduled_run_time, self.window)
        job_id = f"{CATCHUP_JOB_PREFIX}{format_timestamp(window_start)}"

        self.scheduler.add_job(
            func=self.tick_callable,
            trigger=DateTrigger(run_date=utc_now(), timezone=timezone.utc),
            args=[window_start],
            id=job_id,
            name="Reminder dispatch tick (catch-up)",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )

        logger.warning(
            f"Tick for window {format_timestamp(window_start)} was skipped; running catch-up",
            extra={
                "event": "scheduler.tick.catch_up",
                "window_start": format_timestamp(window_start),
                "job_id": job_id,
            },
        )
        return job_id

    def _on_skipped_run(self, event) -> None:
        # Catch-up jobs are not re-submitted: their window is already running
        if event.job_id.startswith(CATCHUP_JOB_PREFIX):
            return

        run_times = getattr(event, "scheduled_run_times", None) or [event.scheduled_run_time]
        for run_time in run_times:
            self.catch_up(run_time)

    def _run_aligned_tick(self) -> Any:
        window_start = window_start_for(utc_now(), self.window)
        return self.tick_callable(window_start)
