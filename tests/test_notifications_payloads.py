"""Tests for notification record construction."""

from datetime import datetime, timedelta, timezone

import pytest

from fanout.domain.models import ContentEvent, NotificationType
from fanout.notifications import (
    NotificationTemplateError,
    TemplateRenderer,
    build_content_records,
    build_reminder_records,
    format_offset_label,
)
from fanout.notifications.payloads import build_reminder_context
from fanout.scheduler.window import DueReminder

NOW = datetime(2025, 1, 9, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def renderer():
    return TemplateRenderer()


class TestFormatOffsetLabel:
    """Tests for format_offset_label."""

    @pytest.mark.parametrize(
        "minutes, expected",
        [
            (1440, "24h"),
            (60, "1h"),
            (90, "2h"),
            (150, "3h"),
            (75, "1h"),
            (15, "15min"),
            (59, "59min"),
        ],
    )
    def test_labels(self, minutes, expected):
        assert format_offset_label(timedelta(minutes=minutes)) == expected


class TestContentRecords:
    """Tests for build_content_records."""

    def test_one_record_per_recipient(self, renderer):
        event = ContentEvent(post_id="post-1", actor_id="A", organization_id="B")

        records = build_content_records(event, {"U3", "U1", "U2"}, "Jane Doe", NOW, renderer)

        assert [r.recipient_id for r in records] == ["U1", "U2", "U3"]
        for record in records:
            assert record.type is NotificationType.NEW_CONTENT
            assert record.title == "📢 Jane Doe posted new content"
            assert record.message == "Check out their latest post in the PLUG Feed"
            assert record.created_at == NOW
            assert record.metadata == {"source_id": "post-1", "actor_id": "A", "organization_id": "B"}

    def test_metadata_without_organization(self, renderer):
        event = ContentEvent(post_id="post-1", actor_id="A")

        records = build_content_records(event, ["U1"], "Jane Doe", NOW, renderer)

        assert records[0].metadata == {"source_id": "post-1", "actor_id": "A"}

    def test_metadata_not_shared_between_records(self, renderer):
        """Test each record owns its metadata dict."""
        event = ContentEvent(post_id="post-1", actor_id="A")

        first, second = build_content_records(event, ["U1", "U2"], "Jane", NOW, renderer)
        first.metadata["extra"] = True

        assert "extra" not in second.metadata

    def test_empty_audience(self, renderer):
        event = ContentEvent(post_id="post-1", actor_id="A")

        assert build_content_records(event, [], "Jane", NOW, renderer) == []


class TestReminderRecords:
    """Tests for build_reminder_records."""

    def test_tier1_record(self, webinar, renderer):
        reminder = DueReminder(event=webinar, tier=1, offset=timedelta(minutes=60))

        records = build_reminder_records(reminder, {"u2", "u1"}, NOW, renderer)

        assert [r.recipient_id for r in records] == ["u1", "u2"]
        record = records[0]
        assert record.type is NotificationType.EVENT_REMINDER_TIER1
        assert record.title == '🎥 "Hiring in 2025" starts in 1h'
        assert record.message == "Click to join the webinar"
        assert record.metadata == {
            "source_id": "evt-1",
            "actor_id": "org-1",
            "tier": 1,
            "offset_minutes": 60,
        }
        assert record.delivery_key == ("u1", "evt-1", "event_reminder_tier1")

    def test_tier2_record_without_link(self, webinar, renderer):
        """Test events without a join link point at the live stream."""
        event = webinar.model_copy(update={"link_url": None})
        reminder = DueReminder(event=event, tier=2, offset=timedelta(minutes=1440))

        record = build_reminder_records(reminder, ["u1"], NOW, renderer)[0]

        assert record.type is NotificationType.EVENT_REMINDER_TIER2
        assert record.title == '🎥 "Hiring in 2025" starts in 24h'
        assert record.message == "The webinar will stream live in the PLUG Feed"

    def test_creator_is_metadata_actor_without_organization(self, webinar, renderer):
        event = webinar.model_copy(update={"organization_id": None})
        reminder = DueReminder(event=event, tier=1, offset=timedelta(minutes=60))

        record = build_reminder_records(reminder, ["u1"], NOW, renderer)[0]

        assert record.metadata["actor_id"] == "creator-1"

    def test_reminder_context(self, webinar):
        reminder = DueReminder(event=webinar, tier=2, offset=timedelta(minutes=1440))

        context = build_reminder_context(reminder)

        assert context["starts_at"] == "2025-01-10T10:00:00+00:00"
        assert context["time_label"] == "24h"
        assert context["offset_minutes"] == 1440
        assert context["tier"] == 2

    def test_template_error_propagates(self, webinar):
        renderer = TemplateRenderer({"reminder_title": "{{ speaker_name }}"})
        reminder = DueReminder(event=webinar, tier=1, offset=timedelta(minutes=60))

        with pytest.raises(NotificationTemplateError):
            build_reminder_records(reminder, ["u1"], NOW, renderer)
