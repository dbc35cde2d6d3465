"""SQL-backed notification sink."""

from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError

from fanout.domain.models import NotificationRecord
from fanout.logging import get_logger
from fanout.notifications.models import SinkWriteError
from fanout.notifications.sink import NotificationSink

from .database import get_session
from .exceptions import PersistenceError
from .repositories import NotificationRepository

logger = get_logger(__name__, component="sink")


class SqlNotificationSink(NotificationSink):
    """Writes notification records to the ``notifications`` table.

    Each ``insert_many`` call runs in one transaction. Duplicate delivery keys
    are skipped by the database; any other failure rolls back the whole batch.
    """

    def __init__(self, batch_size: int = 100):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    def insert_many(self, records: Sequence[NotificationRecord]) -> int:
        if not records:
            return 0

        try:
            with get_session() as session:
                written = NotificationRepository(session).insert_many(records, batch_size=self.batch_size)
        except (PersistenceError, SQLAlchemyError) as e:
            raise SinkWriteError(f"Failed to write {len(records)} notifications: {e}", batch_size=len(records)) from e

        logger.debug(
            f"Wrote {written} of {len(records)} notifications",
            extra={
                "event": "sink.batch.written",
                "batch_size": len(records),
                "written": written,
                "duplicates": len(records) - written,
            },
        )
        return written

    def list_for_recipient(self, recipient_id: str) -> List[NotificationRecord]:
        try:
            with get_session() as session:
                return NotificationRepository(session).list_for_recipient(recipient_id)
        except (PersistenceError, SQLAlchemyError) as e:
            raise SinkWriteError(f"Failed to read notifications for {recipient_id}: {e}") from e
