"""Domain-level exceptions."""

from typing import Optional


class MalformedEventError(ValueError):
    """Raised when a scheduled event cannot be evaluated for reminders.

    Examples:
    - Missing target instant (starts_at)
    - Negative reminder offset
    - More reminder offsets than there are reminder tiers

    The dispatcher skips the single event and logs a data-integrity warning;
    the rest of the tick continues.
    """

    def __init__(self, message: str, event_id: Optional[str] = None):
        self.event_id = event_id
        super().__init__(message)
