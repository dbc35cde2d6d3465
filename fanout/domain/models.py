"""Core domain models for follow graphs, scheduled events and notifications.

This module defines the data structures used throughout the application:
- FollowTarget / FollowEdge: who follows whom (users or organizations)
- AffiliationEdge: implicit followers derived from job applications
- ScheduledEvent / Registration: events with reminder offsets and their attendees
- NotificationRecord: the append-only output of the dispatcher
- ContentEvent / ReminderEvent: event descriptors consumed by the recipient resolver
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_REMINDER_TIERS = 2


def _to_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class FollowTargetKind(str, Enum):
    """Kinds of entity a user can follow."""

    USER = "user"
    ORGANIZATION = "organization"


class FollowTarget(BaseModel):
    """Tagged reference to a followable entity.

    A follow edge points at exactly one of a closed set of target kinds, so the
    resolver can be exhaustive over ``FollowTargetKind``.
    """

    kind: FollowTargetKind
    id: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @classmethod
    def user(cls, user_id: str) -> "FollowTarget":
        return cls(kind=FollowTargetKind.USER, id=user_id)

    @classmethod
    def organization(cls, organization_id: str) -> "FollowTarget":
        return cls(kind=FollowTargetKind.ORGANIZATION, id=organization_id)


class FollowEdge(BaseModel):
    """A follower relationship. Duplicate edges are legal."""

    follower_id: str = Field(..., min_length=1)
    target: FollowTarget


class AffiliationEdge(BaseModel):
    """A user with a transactional history with an organization.

    Derived from applications to the organization's job postings and treated as
    an implicit follow of the organization.
    """

    user_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)


class ScheduledEvent(BaseModel):
    """A future event (e.g. a webinar) with independent reminder offsets.

    ``starts_at`` and the offsets are permissive here: rows read
    from storage may be malformed, and the window evaluator is the one place that
    rejects them (see ``MalformedEventError``).

    Offset position ``i`` in ``reminder_offsets`` is reminder tier ``i + 1``.
    """

    id: str = Field(..., min_length=1)
    creator_id: str = Field(..., min_length=1)
    organization_id: Optional[str] = None
    title: str = ""
    link_url: Optional[str] = None
    starts_at: Optional[datetime] = Field(None, description="Target instant (UTC)")
    reminder_offsets: List[Optional[timedelta]] = Field(default_factory=list)

    @field_validator("starts_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    @property
    def audience_actor_id(self) -> str:
        """The user who is never reminded about their own event."""
        return self.creator_id

    @property
    def metadata_actor_id(self) -> str:
        """Organization hosting the event, or the creator when there is none."""
        return self.organization_id or self.creator_id

    model_config = {"json_schema_extra": {"example": {
        "id": "evt-1",
        "creator_id": "user-1",
        "organization_id": "org-1",
        "title": "Hiring in 2025",
        "link_url": None,
        "starts_at": "2025-01-10T10:00:00Z",
        "reminder_offsets": ["PT1H", "P1D"],
    }}}


class Registration(BaseModel):
    """A user opted in to reminders for a scheduled event."""

    event_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class NotificationType(str, Enum):
    """Discriminator stored on every notification record."""

    NEW_CONTENT = "new_content"
    EVENT_REMINDER_TIER1 = "event_reminder_tier1"
    EVENT_REMINDER_TIER2 = "event_reminder_tier2"


_REMINDER_TYPES = {
    1: NotificationType.EVENT_REMINDER_TIER1,
    2: NotificationType.EVENT_REMINDER_TIER2,
}


def reminder_type_for_tier(tier: int) -> NotificationType:
    """Map a 1-based reminder tier to its notification type."""
    try:
        return _REMINDER_TYPES[tier]
    except KeyError:
        raise ValueError(f"Unsupported reminder tier: {tier}") from None


class NotificationRecord(BaseModel):
    """An in-app notification for one recipient.

    ``source_id`` (post or event id) and ``type`` together with ``recipient_id``
    form the delivery key the sink deduplicates on.
    """

    recipient_id: str = Field(..., min_length=1)
    type: NotificationType
    title: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    @field_validator("metadata")
    @classmethod
    def require_source(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Every record must name the post or event it was produced for."""
        if not v.get("source_id"):
            raise ValueError("metadata.source_id is required")
        return v

    @property
    def source_id(self) -> str:
        return str(self.metadata["source_id"])

    @property
    def delivery_key(self) -> tuple:
        """(recipient, source, type): at most one stored record per key."""
        return (self.recipient_id, self.source_id, self.type.value)


class ContentEvent(BaseModel):
    """Content posted by an actor, optionally on behalf of an organization."""

    post_id: str = Field(..., min_length=1)
    actor_id: str = Field(..., min_length=1)
    organization_id: Optional[str] = None

    @field_validator("organization_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    def follow_targets(self) -> List[FollowTarget]:
        """Targets whose followers form the audience of this post."""
        targets = [FollowTarget.user(self.actor_id)]
        if self.organization_id:
            targets.append(FollowTarget.organization(self.organization_id))
        return targets


class ReminderEvent(BaseModel):
    """Reminder fan-out for a scheduled event; audience is its registrations."""

    event_id: str = Field(..., min_length=1)
    actor_id: str = Field(..., min_length=1)
