"""SQL-backed data source for the resolver and dispatcher."""

from datetime import datetime
from typing import Callable, List, Optional, Set, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fanout.audience.exceptions import DataSourceUnavailableError
from fanout.audience.sources import DataSource
from fanout.domain.models import FollowTarget, ScheduledEvent
from fanout.logging import get_logger

from .database import get_session
from .exceptions import PersistenceError
from .repositories import (
    ApplicationRepository,
    FollowRepository,
    ProfileRepository,
    RegistrationRepository,
    ScheduledEventRepository,
)

logger = get_logger(__name__, component="data_source")

T = TypeVar("T")


class SqlDataSource(DataSource):
    """DataSource reading from the application database.

    Each call opens and closes its own session, so one instance can be shared
    by all worker threads of a tick.
    """

    def get_followers(self, target: FollowTarget) -> Set[str]:
        return self._query("get_followers", lambda s: FollowRepository(s).followers_of(target))

    def get_affiliated_users(self, organization_id: str) -> Set[str]:
        return self._query(
            "get_affiliated_users",
            lambda s: ApplicationRepository(s).affiliated_users(organization_id),
        )

    def get_registered_users(self, event_id: str) -> Set[str]:
        return self._query(
            "get_registered_users",
            lambda s: RegistrationRepository(s).registered_users(event_id),
        )

    def get_upcoming_events(self, now: datetime) -> List[ScheduledEvent]:
        return self._query(
            "get_upcoming_events",
            lambda s: ScheduledEventRepository(s).get_upcoming(now),
        )

    def get_display_name(self, user_id: str) -> Optional[str]:
        return self._query(
            "get_display_name",
            lambda s: ProfileRepository(s).get_display_name(user_id),
        )

    def _query(self, source: str, operation: Callable[[Session], T]) -> T:
        try:
            with get_session() as session:
                return operation(session)
        except (PersistenceError, SQLAlchemyError, ValidationError) as e:
            logger.error(
                f"Data source query {source} failed: {e}",
                extra={"event": "data_source.query.failed", "source": source, "error_type": type(e).__name__},
            )
            raise DataSourceUnavailableError(f"{source} failed: {e}", source=source) from e
