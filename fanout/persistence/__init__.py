"""Persistence layer backed by SQLAlchemy.

This module provides the public API for database operations including:
- Database initialization and connection management
- Repository classes for the follow graph, events, registrations and notifications
- The SQL implementations of the data source and notification sink
- Custom exceptions for error handling

Example usage:
    >>> from fanout.persistence import init_database, SqlDataSource, SqlNotificationSink
    >>>
    >>> init_database("sqlite:///./data/notifications.db")
    >>> source = SqlDataSource()
    >>> sink = SqlNotificationSink(batch_size=100)
"""

# Database initialization and session management
from .database import close_database, get_engine, get_session, init_database

# Repository classes
from .repositories import (
    ApplicationRepository,
    FollowRepository,
    NotificationRepository,
    ProfileRepository,
    RegistrationRepository,
    ScheduledEventRepository,
)

# Collaborator implementations
from .sink import SqlNotificationSink
from .sources import SqlDataSource

# Exceptions
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "ProfileRepository",
    "FollowRepository",
    "ApplicationRepository",
    "ScheduledEventRepository",
    "RegistrationRepository",
    "NotificationRepository",
    # Collaborators
    "SqlDataSource",
    "SqlNotificationSink",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
