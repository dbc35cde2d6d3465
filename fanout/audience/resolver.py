"""Recipient resolution for content and reminder events.

The resolver turns an event descriptor into the set of users that must be
notified. It is a pure function of the data sources' current answers: no state
is carried between calls, and the order in which sources are queried does not
affect the result.
"""

import logging
from typing import Dict, FrozenSet, Optional, Set, Union

from fanout.domain.models import ContentEvent, FollowTarget, FollowTargetKind, ReminderEvent
from fanout.logging import get_logger

from .sources import DataSource

logger = get_logger(__name__, component="audience")

EventDescriptor = Union[ContentEvent, ReminderEvent]


class RecipientResolver:
    """Computes the deduplicated audience of an event.

    Resolution paths:
    - ContentEvent: followers of the actor, followers of the organization and
      users affiliated with the organization
    - ReminderEvent: users registered for the scheduled event

    The actor is removed from the audience on every path.
    """

    def __init__(self, data_source: DataSource, logger_instance: Optional[logging.Logger] = None):
        """Initialize RecipientResolver.

        Args:
            data_source: Source of follows, affiliations and registrations
            logger_instance: Optional logger instance (defaults to module logger)
        """
        self.data_source = data_source
        self.logger = logger_instance or logger

    def resolve(self, event: EventDescriptor) -> FrozenSet[str]:
        """Resolve the audience of an event.

        Args:
            event: ContentEvent or ReminderEvent descriptor

        Returns:
            Frozen set of recipient user ids, never containing the actor

        Raises:
            DataSourceUnavailableError: If any source fails; no partial audience
                is returned
            TypeError: If the descriptor is not a supported event type
        """
        if isinstance(event, ContentEvent):
            source_counts, audience = self._resolve_content(event)
        elif isinstance(event, ReminderEvent):
            source_counts, audience = self._resolve_reminder(event)
        else:
            raise TypeError(f"Unsupported event descriptor: {type(event).__name__}")

        audience.discard(event.actor_id)

        self.logger.debug(
            f"Resolved audience of {len(audience)} recipients",
            extra={
                "event": "audience.resolved",
                "descriptor": type(event).__name__,
                "actor_id": event.actor_id,
                "audience_size": len(audience),
                **source_counts,
            },
        )
        return frozenset(audience)

    def _resolve_content(self, event: ContentEvent):
        audience: Set[str] = set()
        counts: Dict[str, int] = {}

        for target in event.follow_targets():
            followers = self._followers_of(target)
            counts[f"{target.kind.value}_followers"] = len(followers)
            audience |= followers

            if target.kind is FollowTargetKind.ORGANIZATION:
                affiliated = set(self.data_source.get_affiliated_users(target.id))
                counts["affiliated_users"] = len(affiliated)
                audience |= affiliated

        return counts, audience

    def _resolve_reminder(self, event: ReminderEvent):
        registered = set(self.data_source.get_registered_users(event.event_id))
        return {"registered_users": len(registered)}, registered

    def _followers_of(self, target: FollowTarget) -> Set[str]:
        if target.kind not in (FollowTargetKind.USER, FollowTargetKind.ORGANIZATION):
            raise TypeError(f"Unsupported follow target kind: {target.kind}")
        return set(self.data_source.get_followers(target))
