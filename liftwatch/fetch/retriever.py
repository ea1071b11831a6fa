import asyncio
import logging
from typing import List, Optional, Sequence

from liftwatch.core.config import SourceConfig, settings
from liftwatch.fetch.base import BaseStrategy, NoData, RawMarkup, RetrievalError, RetrievalOutcome
from liftwatch.fetch.utils import utc_now

logger = logging.getLogger(__name__)


class Retriever:
    """
    Try each strategy in order until one returns markup.

    Failures of any kind (HTTP status, timeouts, browser crashes) are logged
    and turned into NoData; only cancellation propagates.
    """

    def __init__(self, strategies: Sequence[BaseStrategy], timeout_sec: float = settings.RETRIEVAL_TIMEOUT_SEC):
        if not strategies:
            raise ValueError("Retriever needs at least one strategy")
        self.strategies = list(strategies)
        self.timeout_sec = timeout_sec

    async def retrieve(self, url: str) -> RetrievalOutcome:
        reasons: List[str] = []
        for strategy in self.strategies:
            try:
                html = await asyncio.wait_for(strategy.fetch(url), timeout=self.timeout_sec)
            except asyncio.TimeoutError:
                reason = f"{strategy.name}: gave up after {self.timeout_sec}s"
            except RetrievalError as e:
                reason = f"{strategy.name}: {e}"
            except Exception as e:
                reason = f"{strategy.name}: unexpected {type(e).__name__}: {e}"
            else:
                if html:
                    return RawMarkup(
                        html=html,
                        strategy=strategy.name,
                        fetched_at=utc_now().isoformat(timespec="seconds"),
                    )
                reason = f"{strategy.name}: empty response"

            logger.warning("Retrieval strategy failed, %s", reason)
            reasons.append(reason)

        return NoData(reason="; ".join(reasons))


def build_strategies(source: SourceConfig, names: Optional[Sequence[str]] = None) -> List[BaseStrategy]:
    """Instantiate the configured strategy chain for a source, e.g. ["direct", "browser"]."""
    names = list(names if names is not None else settings.STRATEGIES)
    strategies: List[BaseStrategy] = []
    for name in names:
        if name == "direct":
            from liftwatch.fetch.scraper import DirectFetchStrategy

            # Only insist on the landmark when something else can take over
            landmark = source.landmark_selector if name != names[-1] else None
            strategies.append(DirectFetchStrategy(landmark_selector=landmark))
        elif name == "browser":
            from liftwatch.fetch.js_scraper import BrowserStrategy

            strategies.append(BrowserStrategy(landmark_selector=source.landmark_selector))
        else:
            raise ValueError(f"Unknown retrieval strategy {name!r}")
    return strategies
