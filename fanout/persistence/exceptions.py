"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so data-source
adapters can translate any storage failure with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Empty or malformed database URL
    - Database file not accessible
    - Session requested before init_database()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a required record does not exist.

    Optional lookups return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised on a constraint violation that cannot be absorbed.

    Duplicate notifications are absorbed by the sink and never raise this.
    """

    pass
