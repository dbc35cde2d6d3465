"""Unit tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from fanout.domain import MalformedEventError
from fanout.domain.models import (
    ContentEvent,
    FollowTarget,
    FollowTargetKind,
    NotificationRecord,
    NotificationType,
    ReminderEvent,
    ScheduledEvent,
    reminder_type_for_tier,
)


class TestFollowTarget:
    """Tests for FollowTarget model."""

    def test_constructors(self):
        assert FollowTarget.user("A").kind == FollowTargetKind.USER
        assert FollowTarget.organization("B").kind == FollowTargetKind.ORGANIZATION

    def test_targets_are_hashable_and_comparable(self):
        """Test equal targets collapse in a set."""
        targets = {FollowTarget.user("A"), FollowTarget.user("A"), FollowTarget.organization("A")}

        assert len(targets) == 2

    def test_frozen(self):
        target = FollowTarget.user("A")

        with pytest.raises(ValidationError):
            target.id = "B"

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            FollowTarget.user("")


class TestScheduledEvent:
    """Tests for ScheduledEvent model."""

    def test_offsets_parsed_from_iso_durations(self):
        """Test offsets accept ISO-8601 durations from storage or fixtures."""
        event = ScheduledEvent(
            id="evt-1",
            creator_id="u1",
            starts_at="2025-01-10T10:00:00Z",
            reminder_offsets=["PT1H", "P1D"],
        )

        assert event.reminder_offsets == [timedelta(hours=1), timedelta(days=1)]
        assert event.starts_at == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)

    def test_naive_starts_at_treated_as_utc(self):
        event = ScheduledEvent(id="evt-1", creator_id="u1", starts_at=datetime(2025, 1, 10, 10, 0))

        assert event.starts_at.tzinfo == timezone.utc

    def test_offset_aware_starts_at_converted(self):
        """Test non-UTC instants are normalized to UTC."""
        plus_two = timezone(timedelta(hours=2))
        event = ScheduledEvent(
            id="evt-1", creator_id="u1", starts_at=datetime(2025, 1, 10, 12, 0, tzinfo=plus_two)
        )

        assert event.starts_at == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
        assert event.starts_at.utcoffset() == timedelta(0)

    def test_malformed_values_are_accepted(self):
        """Test storage rows with missing data still load, to be rejected later."""
        event = ScheduledEvent(id="evt-1", creator_id="u1", reminder_offsets=[None])

        assert event.starts_at is None
        assert event.reminder_offsets == [None]

    def test_actor_ids(self, webinar):
        assert webinar.audience_actor_id == "creator-1"
        assert webinar.metadata_actor_id == "org-1"

        personal = webinar.model_copy(update={"organization_id": None})
        assert personal.metadata_actor_id == "creator-1"


class TestNotificationRecord:
    """Tests for NotificationRecord model."""

    def make_record(self, **overrides):
        values = {
            "recipient_id": "u1",
            "type": NotificationType.EVENT_REMINDER_TIER1,
            "title": "Starting soon",
            "message": "Hiring in 2025 starts in 1h",
            "metadata": {"source_id": "evt-1", "actor_id": "org-1"},
            "created_at": datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return NotificationRecord(**values)

    def test_delivery_key(self):
        record = self.make_record()

        assert record.source_id == "evt-1"
        assert record.delivery_key == ("u1", "evt-1", "event_reminder_tier1")

    def test_source_id_required(self):
        """Test a record without a source cannot be deduplicated and is rejected."""
        with pytest.raises(ValidationError, match="source_id is required"):
            self.make_record(metadata={"actor_id": "org-1"})

    def test_type_parsed_from_value(self):
        record = self.make_record(type="new_content")

        assert record.type is NotificationType.NEW_CONTENT

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            self.make_record(type="event_reminder_tier3")

    def test_serialization(self):
        """Test the record can be dumped with JSON-compatible values."""
        data = self.make_record().model_dump(mode="json")

        assert data["type"] == "event_reminder_tier1"
        assert data["created_at"].startswith("2025-01-10T09:00:00")
        assert data["metadata"] == {"source_id": "evt-1", "actor_id": "org-1"}


class TestReminderTypes:
    """Tests for reminder_type_for_tier."""

    def test_known_tiers(self):
        assert reminder_type_for_tier(1) is NotificationType.EVENT_REMINDER_TIER1
        assert reminder_type_for_tier(2) is NotificationType.EVENT_REMINDER_TIER2

    @pytest.mark.parametrize("tier", [0, 3])
    def test_unknown_tier(self, tier):
        with pytest.raises(ValueError, match="Unsupported reminder tier"):
            reminder_type_for_tier(tier)


class TestEventDescriptors:
    """Tests for ContentEvent and ReminderEvent."""

    def test_content_follow_targets(self):
        event = ContentEvent(post_id="P", actor_id="A", organization_id="B")

        assert event.follow_targets() == [FollowTarget.user("A"), FollowTarget.organization("B")]

    def test_blank_organization_is_none(self):
        event = ContentEvent(post_id="P", actor_id="A", organization_id="  ")

        assert event.organization_id is None
        assert event.follow_targets() == [FollowTarget.user("A")]

    def test_content_requires_actor(self):
        with pytest.raises(ValidationError):
            ContentEvent(post_id="P", actor_id="")

    def test_reminder_event(self):
        event = ReminderEvent(event_id="evt-1", actor_id="creator-1")

        assert event.event_id == "evt-1"


class TestMalformedEventError:
    def test_carries_event_id(self):
        error = MalformedEventError("missing starts_at", event_id="evt-9")

        assert isinstance(error, ValueError)
        assert error.event_id == "evt-9"
        assert str(error) == "missing starts_at"
