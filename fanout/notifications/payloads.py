"""Notification record construction.

This module turns a resolved audience into NotificationRecords: it builds the
template context for each kind of notification, renders title and message
once per batch and stamps one record per recipient.
"""

import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from fanout.domain.models import (
    ContentEvent,
    NotificationRecord,
    NotificationType,
    reminder_type_for_tier,
)
from fanout.scheduler.window import DueReminder
from fanout.utils.timestamps import timedelta_to_minutes

from .templates import TemplateRenderer


def format_offset_label(offset: timedelta) -> str:
    """Short lead-time label used in reminder titles.

    Offsets of an hour or more are shown in whole hours (halves round up),
    shorter ones in minutes.

    Examples:
        >>> format_offset_label(timedelta(minutes=1440))
        '24h'
        >>> format_offset_label(timedelta(minutes=90))
        '2h'
        >>> format_offset_label(timedelta(minutes=15))
        '15min'
    """
    minutes = timedelta_to_minutes(offset)
    if minutes >= 60:
        return f"{math.floor(minutes / 60 + 0.5)}h"
    return f"{minutes}min"


def build_content_context(event: ContentEvent, actor_name: str) -> Dict:
    return {
        "actor_name": actor_name,
        "actor_id": event.actor_id,
        "post_id": event.post_id,
        "organization_id": event.organization_id,
    }


def build_reminder_context(reminder: DueReminder) -> Dict:
    event = reminder.event
    return {
        "event_title": event.title,
        "event_id": event.id,
        "link_url": event.link_url,
        "starts_at": event.starts_at.isoformat(),
        "time_label": format_offset_label(reminder.offset),
        "offset_minutes": timedelta_to_minutes(reminder.offset),
        "tier": reminder.tier,
    }


def build_content_records(
    event: ContentEvent,
    recipients: Iterable[str],
    actor_name: str,
    now: datetime,
    renderer: TemplateRenderer,
) -> List[NotificationRecord]:
    """Build one ``new_content`` record per recipient.

    Args:
        event: The content event
        recipients: Resolved audience
        actor_name: Display name of the poster
        now: Creation timestamp for every record
        renderer: Template renderer

    Returns:
        Records ordered by recipient id

    Raises:
        NotificationTemplateError: If rendering fails
    """
    rendered = renderer.render_pair("content", build_content_context(event, actor_name))
    metadata = {
        "source_id": event.post_id,
        "actor_id": event.actor_id,
    }
    if event.organization_id:
        metadata["organization_id"] = event.organization_id

    return [
        NotificationRecord(
            recipient_id=recipient_id,
            type=NotificationType.NEW_CONTENT,
            title=rendered["title"],
            message=rendered["message"],
            metadata=dict(metadata),
            created_at=now,
        )
        for recipient_id in sorted(recipients)
    ]


def build_reminder_records(
    reminder: DueReminder,
    recipients: Iterable[str],
    now: datetime,
    renderer: TemplateRenderer,
) -> List[NotificationRecord]:
    """Build one reminder record per recipient for a due tier.

    The record type encodes the tier, so two tiers of the same event firing in
    one tick produce distinct delivery keys.

    Raises:
        NotificationTemplateError: If rendering fails
    """
    context = build_reminder_context(reminder)
    rendered = renderer.render_pair("reminder", context)
    notification_type = reminder_type_for_tier(reminder.tier)
    metadata = {
        "source_id": reminder.event.id,
        "actor_id": reminder.event.metadata_actor_id,
        "tier": reminder.tier,
        "offset_minutes": context["offset_minutes"],
    }

    return [
        NotificationRecord(
            recipient_id=recipient_id,
            type=notification_type,
            title=rendered["title"],
            message=rendered["message"],
            metadata=dict(metadata),
            created_at=now,
        )
        for recipient_id in sorted(recipients)
    ]
