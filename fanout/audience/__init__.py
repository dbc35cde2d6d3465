"""Audience resolution: who gets notified about an event."""

from .exceptions import AudienceError, DataSourceUnavailableError
from .resolver import EventDescriptor, RecipientResolver
from .sources import DataSource

__all__ = [
    "RecipientResolver",
    "EventDescriptor",
    "DataSource",
    "AudienceError",
    "DataSourceUnavailableError",
]
