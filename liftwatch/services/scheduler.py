"""
Decides when the status page may be fetched again.

The source publishes no rate limit and blocks clients that look automated, so
we poll it at a randomized pace that follows caller demand: a short window
while someone keeps asking, a long one otherwise, and never outside the
resort's operating hours.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from liftwatch.cache.store import StatusCache
from liftwatch.core.config import SourceConfig
from liftwatch.fetch.utils import local_hour, utc_now

logger = logging.getLogger(__name__)


@dataclass
class FetchState:
    """Mutable timing state and cache for one monitored source."""

    next_interval: timedelta
    last_request_at: datetime
    cache: StatusCache
    last_fetch_attempt_at: Optional[datetime] = None
    active: bool = False
    last_outcome: Optional[str] = None


class Scheduler:
    def __init__(
        self,
        source: SourceConfig,
        state: Optional[FetchState] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self._clock = clock
        self._rng = rng or random.Random()
        if state is None:
            state = FetchState(
                next_interval=timedelta(0),
                last_request_at=clock(),
                cache=StatusCache(clock=clock),
            )
            state.next_interval = self.draw_interval(state.active)
        self.state = state

    def bounds_for_activity(self, active: bool) -> Tuple[timedelta, timedelta]:
        low, high = self.source.active_bounds_minutes if active else self.source.idle_bounds_minutes
        return timedelta(minutes=low), timedelta(minutes=high)

    def draw_interval(self, active: bool) -> timedelta:
        low, high = self.bounds_for_activity(active)
        seconds = self._rng.uniform(low.total_seconds(), high.total_seconds())
        return timedelta(seconds=seconds)

    def is_within_operating_hours(self, moment: Optional[datetime] = None) -> bool:
        hour = local_hour(moment or self._clock(), self.source.zone)
        return self.source.open_hour <= hour < self.source.close_hour

    def should_fetch_now(self) -> bool:
        state = self.state
        if state.last_fetch_attempt_at is None:
            logger.info("No fetch attempted yet for %s, fetching", self.source.source_id)
            return True

        now = self._clock()
        elapsed = now - state.last_fetch_attempt_at
        if elapsed < state.next_interval:
            logger.debug(
                "Backing off %s: %.0fs of %.0fs elapsed",
                self.source.source_id,
                elapsed.total_seconds(),
                state.next_interval.total_seconds(),
            )
            return False

        if not self.is_within_operating_hours(now):
            logger.debug("Outside operating hours for %s, serving cache", self.source.source_id)
            return False

        return True

    def record_request(self) -> None:
        """Note an inbound status query; consecutive queries close together mark the source as active."""
        now = self._clock()
        gap = now - self.state.last_request_at
        self.state.active = gap < timedelta(minutes=self.source.activity_threshold_minutes)
        self.state.last_request_at = now

    def record_attempt(self, outcome: Optional[str] = None) -> None:
        """Called after every fetch attempt, successful or not."""
        self.state.last_fetch_attempt_at = self._clock()
        self.state.next_interval = self.draw_interval(self.state.active)
        if outcome is not None:
            self.state.last_outcome = outcome
        logger.info(
            "Next fetch of %s in %.1f minutes (%s)",
            self.source.source_id,
            self.state.next_interval.total_seconds() / 60,
            "active" if self.state.active else "idle",
        )
