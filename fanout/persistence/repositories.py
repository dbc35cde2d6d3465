"""Data access layer (repositories) for persistence operations.

Repositories wrap a caller-owned session, return domain models and translate
SQLAlchemy failures into PersistenceError. They never commit; ``get_session``
does that when the caller's unit of work succeeds.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Set

from pydantic import ValidationError
from sqlalchemy import func, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fanout.domain.models import (
    AffiliationEdge,
    FollowEdge,
    FollowTarget,
    NotificationRecord,
    Registration,
    ScheduledEvent,
)
from fanout.utils.timestamps import timedelta_to_minutes, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    DELIVERY_COLUMNS,
    DELIVERY_CONSTRAINT,
    ApplicationModel,
    FollowModel,
    JobPostingModel,
    NotificationModel,
    ProfileModel,
    RegistrationModel,
    ScheduledEventModel,
    format_datetime,
)

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Repository for user display names."""

    def __init__(self, session: Session):
        self.session = session

    def upsert(self, user_id: str, full_name: Optional[str]) -> None:
        try:
            existing = self.session.get(ProfileModel, user_id)
            if existing:
                existing.full_name = full_name
            else:
                self.session.add(ProfileModel(user_id=user_id, full_name=full_name))
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting profile {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert profile: {e}") from e

    def get_display_name(self, user_id: str) -> Optional[str]:
        """Return the profile's full name, or None when missing or blank."""
        try:
            profile = self.session.get(ProfileModel, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving profile {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve profile: {e}") from e

        if profile is None or not (profile.full_name or "").strip():
            return None
        return profile.full_name.strip()


class FollowRepository:
    """Repository for follow edges."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, follower_id: str, target: FollowTarget, created_at: Optional[datetime] = None) -> None:
        """Insert a follow edge. Duplicate edges are accepted."""
        try:
            self.session.add(
                FollowModel(
                    follower_id=follower_id,
                    target_kind=target.kind.value,
                    target_id=target.id,
                    created_at=format_datetime(created_at or utc_now()),
                )
            )
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error adding follow {follower_id} -> {target.kind.value}:{target.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add follow: {e}") from e

    def edges_to(self, target: FollowTarget) -> List[FollowEdge]:
        """Return every follow edge pointing at a user or organization, duplicates included."""
        try:
            stmt = (
                select(FollowModel)
                .where(
                    FollowModel.target_kind == target.kind.value,
                    FollowModel.target_id == target.id,
                )
                .order_by(FollowModel.id)
            )
            models = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving followers of {target.kind.value}:{target.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve followers: {e}") from e
        return [model.to_domain() for model in models]

    def followers_of(self, target: FollowTarget) -> Set[str]:
        """Return distinct follower ids of a user or organization."""
        return {edge.follower_id for edge in self.edges_to(target)}


class ApplicationRepository:
    """Repository for postings and applications, the source of affiliations."""

    def __init__(self, session: Session):
        self.session = session

    def add_posting(self, posting_id: str, organization_id: str) -> None:
        try:
            if self.session.get(JobPostingModel, posting_id) is None:
                self.session.add(JobPostingModel(id=posting_id, organization_id=organization_id))
                self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error adding posting {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add posting: {e}") from e

    def add_application(self, posting_id: str, candidate_id: str) -> None:
        """Record an application.

        Raises:
            RecordNotFoundError: If the posting does not exist
        """
        try:
            if self.session.get(JobPostingModel, posting_id) is None:
                raise RecordNotFoundError(f"Posting not found: {posting_id}")
            self.session.add(ApplicationModel(posting_id=posting_id, candidate_id=candidate_id))
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error adding application to {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add application: {e}") from e

    def affiliations_of(self, organization_id: str) -> List[AffiliationEdge]:
        """Return one affiliation per candidate who applied to any posting of the organization."""
        try:
            stmt = (
                select(ApplicationModel.candidate_id)
                .join(JobPostingModel, ApplicationModel.posting_id == JobPostingModel.id)
                .where(JobPostingModel.organization_id == organization_id)
                .distinct()
                .order_by(ApplicationModel.candidate_id)
            )
            candidate_ids = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving affiliated users of {organization_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve affiliated users: {e}") from e
        return [
            AffiliationEdge(user_id=candidate_id, organization_id=organization_id)
            for candidate_id in candidate_ids
        ]

    def affiliated_users(self, organization_id: str) -> Set[str]:
        """Return distinct candidates who applied to any posting of the organization."""
        return {edge.user_id for edge in self.affiliations_of(organization_id)}


class ScheduledEventRepository:
    """Repository for scheduled events."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, event: ScheduledEvent) -> None:
        """Insert a scheduled event. At most two reminder offsets are stored.

        Raises:
            DataIntegrityError: If the event id already exists or has too many offsets,
                or an offset that is not a whole number of minutes
        """
        offsets = list(event.reminder_offsets)
        if len(offsets) > 2:
            raise DataIntegrityError(f"Event {event.id} has more than two reminder offsets")
        for offset in offsets:
            # Offsets are stored as integer minutes
            if offset is not None and offset % timedelta(minutes=1):
                raise DataIntegrityError(
                    f"Event {event.id} reminder offset {offset} is not a whole number of minutes"
                )
        offsets += [None] * (2 - len(offsets))

        try:
            self.session.add(
                ScheduledEventModel(
                    id=event.id,
                    creator_id=event.creator_id,
                    organization_id=event.organization_id,
                    title=event.title,
                    link_url=event.link_url,
                    starts_at=format_datetime(event.starts_at),
                    reminder_1_minutes=timedelta_to_minutes(offsets[0]),
                    reminder_2_minutes=timedelta_to_minutes(offsets[1]),
                )
            )
            self.session.flush()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to add event {event.id}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding event {event.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add event: {e}") from e

    def get(self, event_id: str) -> Optional[ScheduledEvent]:
        try:
            model = self.session.get(ScheduledEventModel, event_id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving event {event_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve event: {e}") from e
        return model.to_domain() if model else None

    def get_upcoming(self, now: datetime) -> List[ScheduledEvent]:
        """Return events starting at or after ``now``, soonest first.

        Events without a start are included so the caller can report them.
        Rows that cannot be converted at all (e.g. a blank creator) are left
        out with a data-integrity warning and the remaining events are returned.
        """
        try:
            stmt = (
                select(ScheduledEventModel)
                .where(
                    or_(
                        ScheduledEventModel.starts_at >= format_datetime(now),
                        ScheduledEventModel.starts_at.is_(None),
                    )
                )
                .order_by(ScheduledEventModel.starts_at.asc(), ScheduledEventModel.id.asc())
            )
            models = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving upcoming events: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve upcoming events: {e}") from e

        events = []
        for model in models:
            try:
                events.append(model.to_domain())
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed event row {model.id!r}: {e.error_count()} invalid field(s)",
                    extra={
                        "event": "event.malformed",
                        "event_id": model.id,
                        "error": str(e).splitlines()[0],
                    },
                )
        return events


class RegistrationRepository:
    """Repository for event registrations."""

    def __init__(self, session: Session):
        self.session = session

    def register(self, event_id: str, user_id: str, created_at: Optional[datetime] = None) -> bool:
        """Register a user for an event (idempotent).

        Returns:
            True if a new registration was created, False if it already existed

        Raises:
            RecordNotFoundError: If the event does not exist
        """
        try:
            if self.session.get(ScheduledEventModel, event_id) is None:
                raise RecordNotFoundError(f"Event not found: {event_id}")

            stmt = select(RegistrationModel.id).where(
                RegistrationModel.event_id == event_id,
                RegistrationModel.user_id == user_id,
            )
            if self.session.execute(stmt).first() is not None:
                return False

            self.session.add(
                RegistrationModel(
                    event_id=event_id,
                    user_id=user_id,
                    created_at=format_datetime(created_at or utc_now()),
                )
            )
            self.session.flush()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error registering {user_id} for {event_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to register: {e}") from e

    def registrations_for(self, event_id: str) -> List[Registration]:
        try:
            stmt = (
                select(RegistrationModel.user_id)
                .where(RegistrationModel.event_id == event_id)
                .order_by(RegistrationModel.id)
            )
            user_ids = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving registrations of {event_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve registrations: {e}") from e
        return [Registration(event_id=event_id, user_id=user_id) for user_id in user_ids]

    def registered_users(self, event_id: str) -> Set[str]:
        return {registration.user_id for registration in self.registrations_for(event_id)}


class NotificationRepository:
    """Repository for notification records.

    Inserts are idempotent on the delivery key (recipient_id, source_id, type):
    rows that already exist are skipped and not counted.
    """

    def __init__(self, session: Session):
        self.session = session

    def insert_many(self, records: Sequence[NotificationRecord], batch_size: int = 100) -> int:
        """Insert records, ignoring ones whose delivery key already exists.

        Args:
            records: Records to insert
            batch_size: Rows per INSERT statement

        Returns:
            Number of rows actually inserted

        Raises:
            PersistenceError: On any database failure other than a duplicate key
        """
        if not records:
            return 0

        rows = [NotificationModel.row_from_domain(record) for record in records]
        dialect = self.session.get_bind().dialect.name
        written = 0

        try:
            for chunk in _chunks(rows, batch_size):
                if dialect == "sqlite":
                    stmt = (
                        sqlite_insert(NotificationModel.__table__)
                        .values(chunk)
                        .on_conflict_do_nothing(index_elements=list(DELIVERY_COLUMNS))
                    )
                elif dialect == "postgresql":
                    stmt = (
                        postgresql_insert(NotificationModel.__table__)
                        .values(chunk)
                        .on_conflict_do_nothing(constraint=DELIVERY_CONSTRAINT)
                    )
                else:
                    written += self._insert_each(chunk)
                    continue

                written += self.session.execute(stmt).rowcount
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error inserting {len(rows)} notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert notifications: {e}") from e

        return written

    def _insert_each(self, rows: Iterable[dict]) -> int:
        """Portable fallback: one savepoint per row, duplicates rolled back."""
        written = 0
        for row in rows:
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(NotificationModel.__table__).values(**row))
                written += 1
            except IntegrityError:
                logger.debug(
                    f"Duplicate notification for {row['recipient_id']} / {row['source_id']} / {row['type']}"
                )
        return written

    def list_for_recipient(self, recipient_id: str) -> List[NotificationRecord]:
        """Return a recipient's notifications, newest first."""
        try:
            stmt = (
                select(NotificationModel)
                .where(NotificationModel.recipient_id == recipient_id)
                .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            )
            models = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving notifications for {recipient_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notifications: {e}") from e

        return [model.to_domain() for model in models]

    def count(self, source_id: Optional[str] = None) -> int:
        """Count stored notifications, optionally for one post or event."""
        try:
            stmt = select(func.count(NotificationModel.id))
            if source_id is not None:
                stmt = stmt.where(NotificationModel.source_id == source_id)
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count notifications: {e}") from e


def _chunks(rows: List[dict], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]
