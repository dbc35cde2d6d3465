"""Main entry point for the notification fan-out service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from fanout.audience.exceptions import AudienceError
from fanout.config.environment import EnvironmentConfig
from fanout.config.exceptions import ConfigurationError
from fanout.config.loader import load_config
from fanout.config.models import AppConfig
from fanout.domain.models import ContentEvent
from fanout.logging import get_logger
from fanout.logging.config import configure_logging
from fanout.notifications.models import NotificationError
from fanout.persistence.database import close_database, init_database
from fanout.persistence.sink import SqlNotificationSink
from fanout.persistence.sources import SqlDataSource
from fanout.pipeline import FanoutDispatcher
from fanout.scheduler import SchedulerService, window_start_for
from fanout.utils.timestamps import format_timestamp, parse_iso_datetime, utc_now

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load and prepare runtime configuration.

    Args:
        config_path: Path to configuration file (None for the default lookup)
        log_level_override: Log level from CLI (takes precedence)

    Returns:
        Tuple of (AppConfig, EnvironmentConfig) with the effective log level
        stored on the environment config

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    # Log level priority: CLI > Environment > Config
    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Notification fan-out - reminder dispatch and content notification service"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single reminder tick and exit",
    )
    parser.add_argument(
        "--now",
        default=None,
        help="ISO-8601 instant to evaluate in --manual-run (default: current window)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    content = parser.add_argument_group("content event", "Fan out a newly published post and exit")
    content.add_argument("--post-id", default=None, help="Identifier of the published post")
    content.add_argument("--actor-id", default=None, help="User who published the post")
    content.add_argument("--organization-id", default=None, help="Organization the post belongs to")

    return parser


def main(argv=None) -> int:
    """
    Main entry point for the notification fan-out service.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.post_id and not args.actor_id:
        parser.error("--post-id requires --actor-id")
    if args.now and not args.manual_run:
        parser.error("--now is only valid with --manual-run")

    try:
        # Step 1: Load configuration early (before logging for format detection)
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        # Step 2: Configure logging early
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        mode = "content" if args.post_id else ("manual" if args.manual_run else "daemon")
        logger.info(
            "Notification fan-out starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "mode": mode,
            },
        )

        now = None
        if args.now:
            now = parse_iso_datetime(args.now)
            if now is None:
                raise ConfigurationError(
                    f"Invalid --now value: {args.now}",
                    suggestions=["Use an ISO-8601 instant such as 2025-01-10T09:00:00Z"],
                )

        # Step 3: Initialize database
        init_database(env_config.database_url)

        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "poll_interval_seconds": app_config.poll_interval_seconds,
                "max_workers": app_config.dispatcher.max_workers,
                "max_concurrent_ticks": app_config.dispatcher.max_concurrent_ticks,
                "log_format": app_config.logging.format,
            },
        )

        # Step 4: Build the dispatcher over the SQL collaborators
        dispatcher = FanoutDispatcher(
            data_source=SqlDataSource(),
            sink=SqlNotificationSink(batch_size=app_config.dispatcher.insert_batch_size),
            app_config=app_config,
        )

        # Step 5: Branch based on mode
        if args.post_id:
            return _run_content(dispatcher, args, start_time)

        if args.manual_run:
            return _run_manual_tick(dispatcher, app_config, now, start_time)

        return _run_daemon(dispatcher, app_config, start_time)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"}
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True
        )
        return 1


def _run_content(dispatcher: FanoutDispatcher, args, start_time: float) -> int:
    event = ContentEvent(
        post_id=args.post_id,
        actor_id=args.actor_id,
        organization_id=args.organization_id,
    )

    try:
        result = dispatcher.dispatch_content(event)
    except (AudienceError, NotificationError) as e:
        logger.error(
            f"Content dispatch failed: {e}",
            extra={
                "event": "service.content.failed",
                "post_id": event.post_id,
                "error_type": type(e).__name__,
            },
        )
        return 1
    finally:
        close_database()
        _log_stopped(start_time)

    print(
        f"Post {result.post_id}: {result.notifications_written} notifications written "
        f"for {result.recipient_count} recipients"
    )
    return 0


def _run_manual_tick(
    dispatcher: FanoutDispatcher,
    app_config: AppConfig,
    now,
    start_time: float,
) -> int:
    if now is None:
        now = window_start_for(utc_now(), app_config.window)

    logger.info(
        "Executing manual tick",
        extra={"event": "service.manual_tick.starting", "window_start": format_timestamp(now)}
    )
    result = dispatcher.run_tick(now)

    logger.info(
        f"Manual tick completed: "
        f"{result.events_considered} events considered, "
        f"{result.reminders_due} reminders due, "
        f"{result.notifications_written} notifications written",
        extra={
            "event": "service.manual_tick.completed",
            "duration_seconds": result.total_duration_seconds,
            "had_errors": result.had_errors,
            "events_failed": result.events_failed,
            "events_skipped": result.events_skipped,
        },
    )

    close_database()
    _log_stopped(start_time)

    return 1 if result.had_errors else 0


def _run_daemon(dispatcher: FanoutDispatcher, app_config: AppConfig, start_time: float) -> int:
    shutdown_event = threading.Event()

    scheduler_service = SchedulerService(
        tick_callable=dispatcher.run_tick,
        interval_seconds=app_config.poll_interval_seconds,
        shutdown_event=shutdown_event,
        max_instances=app_config.dispatcher.max_concurrent_ticks,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum}
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()

    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"}
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info(
            "Keyboard interrupt received, shutting down",
            extra={"event": "service.keyboard_interrupt"}
        )
        scheduler_service.shutdown(wait=False)

    close_database()
    _log_stopped(start_time)
    return 0


def _log_stopped(start_time: float) -> None:
    logger.info(
        "Notification fan-out stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
        },
    )


if __name__ == "__main__":
    sys.exit(main())
