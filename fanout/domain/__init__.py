"""Domain models for the notification fan-out engine."""

from .exceptions import MalformedEventError
from .models import (
    AffiliationEdge,
    ContentEvent,
    FollowEdge,
    FollowTarget,
    FollowTargetKind,
    NotificationRecord,
    NotificationType,
    Registration,
    ReminderEvent,
    ScheduledEvent,
    reminder_type_for_tier,
)

__all__ = [
    "FollowTargetKind",
    "FollowTarget",
    "FollowEdge",
    "AffiliationEdge",
    "ScheduledEvent",
    "Registration",
    "NotificationType",
    "NotificationRecord",
    "ContentEvent",
    "ReminderEvent",
    "reminder_type_for_tier",
    "MalformedEventError",
]
