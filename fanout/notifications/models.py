"""Exceptions for notification building and persistence."""


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when a title or message template cannot be rendered."""

    pass


class SinkWriteError(NotificationError):
    """Raised when the notification sink rejects a batch.

    The whole batch is rolled back; the dispatcher re-attempts it on a later
    tick and relies on the sink's uniqueness constraint to avoid duplicates.
    """

    def __init__(self, message: str, batch_size: int = 0) -> None:
        super().__init__(message)
        self.batch_size = batch_size
