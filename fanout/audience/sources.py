"""Abstract data-source interface consumed by the resolver and dispatcher."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Set

from fanout.domain.models import FollowTarget, ScheduledEvent


class DataSource(ABC):
    """Read-only view of the follow graph, affiliations, registrations and events.

    Every method may block on I/O and may raise ``DataSourceUnavailableError``
    on transient failures. Implementations must be safe to call from several
    threads at once: a tick evaluates events in parallel.
    """

    @abstractmethod
    def get_followers(self, target: FollowTarget) -> Set[str]:
        """Return ids of users following the given user or organization."""

    @abstractmethod
    def get_affiliated_users(self, organization_id: str) -> Set[str]:
        """Return ids of users with an application to any of the organization's postings."""

    @abstractmethod
    def get_registered_users(self, event_id: str) -> Set[str]:
        """Return ids of users registered for a scheduled event."""

    @abstractmethod
    def get_upcoming_events(self, now: datetime) -> List[ScheduledEvent]:
        """Return scheduled events whose target instant is at or after ``now``."""

    @abstractmethod
    def get_display_name(self, user_id: str) -> Optional[str]:
        """Return the user's display name, or None if unknown."""
