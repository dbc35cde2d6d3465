#!/usr/bin/env python3
"""Sample dispatch harness for end-to-end validation.

Seeds a SQLite database from a YAML fixture, runs one reminder tick at a
chosen instant and fans out the fixture's posts, then prints what was written.
Running it twice against the same database writes nothing new the second
time.

Usage:
    python scripts/run_sample_dispatch.py
    python scripts/run_sample_dispatch.py --now 2025-01-10T09:00:00Z
    python scripts/run_sample_dispatch.py --database /tmp/sample.db --fresh
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from fanout.config.loader import parse_app_config
from fanout.domain.models import ContentEvent
from fanout.logging.config import configure_logging
from fanout.persistence.database import close_database, get_session, init_database
from fanout.persistence.repositories import NotificationRepository
from fanout.persistence.sink import SqlNotificationSink
from fanout.persistence.sources import SqlDataSource
from fanout.pipeline import FanoutDispatcher
from fanout.utils.timestamps import parse_iso_datetime
from tests.helpers.seed import load_fixture, seed_database


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def print_summary_table(rows):
    max_label_width = max(len(label) for label, _ in rows)

    print("┌" + "─" * (max_label_width + 2) + "┬" + "─" * 22 + "┐")
    print(f"│ {'Metric':<{max_label_width}} │ {'Value':<20} │")
    print("├" + "─" * (max_label_width + 2) + "┼" + "─" * 22 + "┤")

    for label, value in rows:
        print(f"│ {label:<{max_label_width}} │ {str(value):<20} │")

    print("└" + "─" * (max_label_width + 2) + "┴" + "─" * 22 + "┘")


def main():
    parser = argparse.ArgumentParser(
        description="Run a sample reminder tick and content fan-out",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=Path("tests/fixtures/sample_dispatch.yaml"),
        help="Path to fixtures YAML file",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=Path("data/sample_dispatch.db"),
        help="Path to SQLite database (default: data/sample_dispatch.db)",
    )
    parser.add_argument(
        "--now",
        default="2025-01-09T10:00:00Z",
        help="Start of the evaluated window (default: 2025-01-09T10:00:00Z)",
    )
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Delete the database before seeding",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)",
    )

    args = parser.parse_args()
    load_dotenv()

    now = parse_iso_datetime(args.now)
    if now is None:
        print(f"❌ Error: invalid --now value: {args.now}")
        return 1

    if not args.fixtures.exists():
        print(f"❌ Error: Fixture file not found: {args.fixtures}")
        return 1

    print_header("Notification fan-out - Sample Dispatch Harness")
    print(f"Fixtures: {args.fixtures}")
    print(f"Database: {args.database}")
    print(f"Window start: {args.now}")

    if args.fresh and args.database.exists():
        args.database.unlink()
    is_new = not args.database.exists()

    configure_logging(level=args.log_level, format_type="key-value", environment="validation")
    app_config = parse_app_config({"poll_interval": "5m", "dispatcher": {"max_workers": 2}})

    init_database(f"sqlite:///{args.database.absolute()}")

    try:
        fixture = load_fixture(args.fixtures)
        if is_new:
            posts = seed_database(fixture)
            print("✓ Database seeded")
        else:
            posts = [ContentEvent(**post) for post in fixture.get("posts", [])]
            print("✓ Reusing seeded database")

        dispatcher = FanoutDispatcher(
            data_source=SqlDataSource(),
            sink=SqlNotificationSink(batch_size=app_config.dispatcher.insert_batch_size),
            app_config=app_config,
        )

        tick = dispatcher.run_tick(now)
        content_written = 0
        for post in posts:
            content_written += dispatcher.dispatch_content(post, now=now).notifications_written

        print_header("Dispatch Summary")
        print_summary_table([
            ("Events Considered", tick.events_considered),
            ("Reminders Due", tick.reminders_due),
            ("Reminder Notifications Written", tick.notifications_written),
            ("Events Failed", tick.events_failed),
            ("Events Skipped", tick.events_skipped),
            ("Posts Dispatched", len(posts)),
            ("Content Notifications Written", content_written),
        ])

        with get_session() as session:
            total = NotificationRepository(session).count()
        print(f"\nNotifications stored in total: {total}")

        return 1 if tick.had_errors else 0

    finally:
        close_database()


if __name__ == "__main__":
    sys.exit(main())
