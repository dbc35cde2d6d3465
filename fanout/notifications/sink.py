"""Abstract notification sink."""

from abc import ABC, abstractmethod
from typing import List, Sequence

from fanout.domain.models import NotificationRecord


class NotificationSink(ABC):
    """Durable, append-only store of notification records.

    Implementations must enforce uniqueness on
    ``(recipient_id, metadata.source_id, type)``. Inserting a record whose key
    already exists is a silent no-op: it is treated as already delivered and
    is not counted as written. This constraint is the only concurrency control
    between overlapping ticks.
    """

    @abstractmethod
    def insert_many(self, records: Sequence[NotificationRecord]) -> int:
        """Persist a batch atomically.

        Returns:
            Number of records actually written (duplicates excluded)

        Raises:
            SinkWriteError: If the batch could not be written; nothing from the
                batch is persisted in that case
        """

    @abstractmethod
    def list_for_recipient(self, recipient_id: str) -> List[NotificationRecord]:
        """Return a recipient's notifications, newest first."""
