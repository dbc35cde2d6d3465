"""Exceptions raised while computing a notification audience."""


class AudienceError(Exception):
    """Base exception for audience resolution errors.

    Catching this exception at the dispatcher level marks the event as not
    processed so it can be re-attempted on a later tick.
    """

    pass


class DataSourceUnavailableError(AudienceError):
    """A data source could not be queried.

    Treated as transient: the whole resolution is abandoned rather than
    returning a partial audience, which would silently under-notify.
    """

    def __init__(self, message: str, source: str = "unknown") -> None:
        """Initialize with the name of the failing source operation.

        Args:
            message: Human-readable error message
            source: Data source operation that failed (e.g. "get_followers")
        """
        super().__init__(message)
        self.source = source
