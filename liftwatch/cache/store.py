import logging
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from liftwatch.fetch.utils import utc_now
from liftwatch.schemas import StatusMap

logger = logging.getLogger(__name__)


class StatusCache:
    """Last known good lift statuses. In memory only; replaced wholesale on each successful fetch."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._value: Mapping[str, str] = MappingProxyType({})
        self.last_updated_at: Optional[datetime] = None

    def get(self) -> StatusMap:
        return dict(self._value)

    def set(self, statuses: StatusMap) -> None:
        self._value = MappingProxyType(dict(statuses))
        self.last_updated_at = self._clock()
        logger.info("Cached %d lift statuses", len(statuses))

    def staleness(self) -> Optional[timedelta]:
        """Time since the last successful set, None if there never was one"""
        if self.last_updated_at is None:
            return None
        return self._clock() - self.last_updated_at
