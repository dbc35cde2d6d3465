"""Shared pytest fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from fanout.config.loader import parse_app_config
from fanout.domain.models import ScheduledEvent
from fanout.logging.context import clear_log_context
from fanout.persistence.database import close_database, init_database

# Fixed scenario instant: webinar starting 2025-01-10T10:00Z, reminders 1h and 24h before
EVENT_START = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
WINDOW = timedelta(minutes=5)


@pytest.fixture(autouse=True)
def reset_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def app_config():
    """Default configuration with a 5 minute window and a single worker."""
    return parse_app_config({"poll_interval": "5m", "dispatcher": {"max_workers": 1}})


@pytest.fixture
def webinar():
    return ScheduledEvent(
        id="evt-1",
        creator_id="creator-1",
        organization_id="org-1",
        title="Hiring in 2025",
        link_url="https://meet.example.com/evt-1",
        starts_at=EVENT_START,
        reminder_offsets=[timedelta(minutes=60), timedelta(minutes=1440)],
    )


@pytest.fixture
def memory_db():
    """Initialized in-memory SQLite database, closed after the test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def file_db(tmp_path):
    """Initialized file-backed SQLite database, safe for multi-threaded tests."""
    init_database(f"sqlite:///{tmp_path / 'notifications.db'}")
    yield tmp_path / "notifications.db"
    close_database()
