import asyncio
import logging
import random
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence

from bs4.element import Tag

from liftwatch.cache.store import StatusCache
from liftwatch.core.config import SourceConfig
from liftwatch.fetch.base import NoData
from liftwatch.fetch.lift_parser import RowStrategy, default_strategies, extract, has_rows, parse_document
from liftwatch.fetch.retriever import Retriever, build_strategies
from liftwatch.fetch.utils import utc_now
from liftwatch.schemas import StatusMap, StatusSnapshot
from liftwatch.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


class LiftStatusMonitor:
    """
    Lift statuses for one source.

    Two entry points:
    - extract_from_document: pure parsing of a document someone else fetched
    - ensure_current_status: scheduler -> retriever -> extractor -> cache,
      always answering with the best known statuses

    At most one fetch is in flight; concurrent callers wait on the same one.
    """

    def __init__(
        self,
        source: SourceConfig,
        retriever: Optional[Retriever] = None,
        row_strategies: Optional[Sequence[RowStrategy]] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self.row_strategies = list(row_strategies) if row_strategies is not None else default_strategies(source)
        self.retriever = retriever or Retriever(build_strategies(source))
        self.scheduler = scheduler or Scheduler(source, clock=clock, rng=rng)
        self._in_flight: Optional[asyncio.Task] = None

    @property
    def cache(self) -> StatusCache:
        return self.scheduler.state.cache

    def extract_from_document(self, document: Tag) -> StatusMap:
        return extract(document, self.row_strategies)

    async def get_status(self, document: Optional[Tag] = None) -> StatusMap:
        """
        Use the given document when it has lift rows, otherwise fall back
        to the scheduled live check.
        """
        if document is not None and has_rows(document, self.row_strategies):
            return self.extract_from_document(document)
        return await self.ensure_current_status()

    async def ensure_current_status(self) -> StatusMap:
        self.scheduler.record_request()

        if self._in_flight is not None and not self._in_flight.done():
            logger.debug("Joining in-flight fetch for %s", self.source.source_id)
            return dict(await asyncio.shield(self._in_flight))

        if not self.scheduler.should_fetch_now():
            return self.cache.get()

        self._in_flight = asyncio.ensure_future(self._refresh())
        return dict(await asyncio.shield(self._in_flight))

    async def _refresh(self) -> StatusMap:
        note = "error"
        try:
            logger.info("Fetching lift status for %s from %s", self.source.source_id, self.source.url)
            outcome = await self.retriever.retrieve(self.source.url)
            if isinstance(outcome, NoData):
                note = f"no data: {outcome.reason}"
            else:
                statuses = extract(parse_document(outcome.html), self.row_strategies)
                if statuses:
                    self.cache.set(statuses)
                    note = "ok"
                else:
                    logger.warning("No lifts found in markup from %s strategy", outcome.strategy)
                    note = "empty"
        except asyncio.CancelledError:
            note = "cancelled"
            raise
        except Exception as e:
            logger.exception("Lift status refresh failed for %s", self.source.source_id)
            note = f"error: {e}"
        finally:
            self.scheduler.record_attempt(note)
        return self.cache.get()

    def snapshot(self) -> StatusSnapshot:
        state = self.scheduler.state
        staleness = self.cache.staleness()
        return StatusSnapshot(
            source_id=self.source.source_id,
            statuses=self.cache.get(),
            updated_at=self.cache.last_updated_at,
            stale_seconds=staleness.total_seconds() if staleness is not None else None,
            last_attempt_at=state.last_fetch_attempt_at,
            next_interval_seconds=state.next_interval.total_seconds(),
            last_outcome=state.last_outcome,
        )

    async def aclose(self) -> None:
        """Abort an in-flight fetch; the browser session is closed by its own scope."""
        task, self._in_flight = self._in_flight, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.info("Cancelled in-flight fetch for %s", self.source.source_id)


_monitors: Dict[str, LiftStatusMonitor] = {}


def get_monitor(source: Optional[SourceConfig] = None) -> LiftStatusMonitor:
    """
    One monitor, and so one FetchState, per source id.
    Asking for a known id with a different configuration is an error;
    close_all() first to reconfigure.
    """
    source = source or SourceConfig.from_settings()
    monitor = _monitors.get(source.source_id)
    if monitor is None:
        monitor = _monitors[source.source_id] = LiftStatusMonitor(source)
    elif monitor.source != source:
        raise ValueError(f"monitor for {source.source_id!r} already exists with a different configuration")
    return monitor


async def close_all() -> None:
    monitors = list(_monitors.values())
    _monitors.clear()
    for monitor in monitors:
        await monitor.aclose()
