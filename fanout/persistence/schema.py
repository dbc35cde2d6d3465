"""Database schema definition and ORM models.

Tables mirror the parts of the recruitment platform the dispatcher reads
(profiles, follows, postings, applications, scheduled events, registrations)
and the one table it writes (notifications). Conversion helpers map rows to
domain models.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from fanout.domain.models import (
    FollowEdge,
    FollowTarget,
    FollowTargetKind,
    NotificationRecord,
    NotificationType,
    ScheduledEvent,
)
from fanout.utils.timestamps import minutes_to_timedelta

logger = logging.getLogger(__name__)

Base = declarative_base()

DELIVERY_CONSTRAINT = "uq_notifications_delivery"
DELIVERY_COLUMNS = ("recipient_id", "source_id", "type")


class ProfileModel(Base):
    """ORM model for profiles table (display names only)."""

    __tablename__ = "profiles"

    user_id = Column(String(64), primary_key=True, nullable=False)
    full_name = Column(String(255), nullable=True)


class FollowModel(Base):
    """ORM model for follows table.

    The followed entity is stored as a (kind, id) pair. Duplicate edges are
    allowed; the resolver deduplicates.
    """

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(String(64), nullable=False)
    target_kind = Column(String(20), nullable=False)
    target_id = Column(String(64), nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "target_kind IN ('user', 'organization')", name="ck_follows_target_kind"
        ),
        Index("idx_follows_target", "target_kind", "target_id"),
    )

    def to_domain(self) -> FollowEdge:
        return FollowEdge(
            follower_id=self.follower_id,
            target=FollowTarget(kind=FollowTargetKind(self.target_kind), id=self.target_id),
        )


class JobPostingModel(Base):
    """ORM model for job_postings table."""

    __tablename__ = "job_postings"

    id = Column(String(64), primary_key=True, nullable=False)
    organization_id = Column(String(64), nullable=False)

    __table_args__ = (Index("idx_job_postings_organization", "organization_id"),)


class ApplicationModel(Base):
    """ORM model for applications table.

    An application links a candidate to an organization through a posting;
    this is the source of affiliation edges.
    """

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    posting_id = Column(String(64), ForeignKey("job_postings.id"), nullable=False)
    candidate_id = Column(String(64), nullable=False)

    __table_args__ = (Index("idx_applications_posting", "posting_id"),)


class ScheduledEventModel(Base):
    """ORM model for scheduled_events table.

    Reminder offsets are whole minutes before ``starts_at``; NULL or 0 means
    the tier is not configured.
    """

    __tablename__ = "scheduled_events"

    id = Column(String(64), primary_key=True, nullable=False)
    creator_id = Column(String(64), nullable=False)
    organization_id = Column(String(64), nullable=True)
    title = Column(Text, nullable=False, default="")
    link_url = Column(Text, nullable=True)
    starts_at = Column(String(50), nullable=True)
    reminder_1_minutes = Column(Integer, nullable=True)
    reminder_2_minutes = Column(Integer, nullable=True)

    __table_args__ = (Index("idx_scheduled_events_starts_at", "starts_at"),)

    def to_domain(self) -> ScheduledEvent:
        """Convert to a domain model.

        An unparseable ``starts_at`` becomes None so the dispatcher can report
        the event as malformed instead of failing the whole load.
        """
        try:
            starts_at = _parse_datetime(self.starts_at)
        except ValueError:
            logger.warning(f"Unparseable starts_at for event {self.id}: {self.starts_at!r}")
            starts_at = None

        return ScheduledEvent(
            id=self.id,
            creator_id=self.creator_id,
            organization_id=self.organization_id,
            title=self.title or "",
            link_url=self.link_url,
            starts_at=starts_at,
            reminder_offsets=[
                minutes_to_timedelta(self.reminder_1_minutes),
                minutes_to_timedelta(self.reminder_2_minutes),
            ],
        )


class RegistrationModel(Base):
    """ORM model for registrations table. Unique per (event, user)."""

    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(64), ForeignKey("scheduled_events.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_registrations_event_user"),
    )


class NotificationModel(Base):
    """ORM model for notifications table.

    The unique constraint on (recipient_id, source_id, type) is what makes
    duplicate writes from retried or overlapping ticks a no-op.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False)
    type = Column(String(40), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=True)
    metadata_json = Column(Text, nullable=False, default="{}")
    source_id = Column(String(64), nullable=False)
    actor_id = Column(String(64), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint(*DELIVERY_COLUMNS, name=DELIVERY_CONSTRAINT),
        Index("idx_notifications_recipient", "recipient_id", "created_at"),
    )

    def to_domain(self) -> NotificationRecord:
        return NotificationRecord(
            recipient_id=self.recipient_id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message or "",
            metadata=json.loads(self.metadata_json or "{}"),
            created_at=_parse_datetime(self.created_at),
        )

    @staticmethod
    def row_from_domain(record: NotificationRecord) -> Dict[str, Any]:
        """Column values for a Core INSERT of one record."""
        return {
            "recipient_id": record.recipient_id,
            "type": record.type.value,
            "title": record.title,
            "message": record.message,
            "metadata_json": json.dumps(record.metadata, sort_keys=True, ensure_ascii=False),
            "source_id": record.source_id,
            "actor_id": record.metadata.get("actor_id"),
            "is_read": False,
            "created_at": format_datetime(record.created_at),
        }


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as a sortable ISO 8601 string for storage.

    All stored instants share one fixed-width format, so string comparison in
    SQL orders them chronologically.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 string to an aware UTC datetime.

    Raises:
        ValueError: If the string is not in a supported format
    """
    if dt_str is None or dt_str == "":
        return None

    dt_str = dt_str.rstrip("Z")
    try:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(sorted(tables))}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
