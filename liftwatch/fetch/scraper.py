import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from liftwatch.core.config import settings
from liftwatch.fetch.base import BaseStrategy, RetrievalError

logger = logging.getLogger(__name__)


def browser_headers(user_agent: str) -> dict:
    """Headers of an ordinary desktop Chrome page load."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
    }


class DirectFetchStrategy(BaseStrategy):
    """
    Plain GET with a spoofed browser identity.

    When landmark_selector is set, a 2xx page without it (typically a JS bot
    challenge) is rejected so the next strategy in the chain gets a turn.
    """

    name = "direct"

    def __init__(
        self,
        user_agent: str = settings.USER_AGENT,
        timeout_sec: float = settings.REQUEST_TIMEOUT,
        landmark_selector: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.timeout_sec = timeout_sec
        self.landmark_selector = landmark_selector
        self._transport = transport

    async def fetch(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_sec,
                headers=browser_headers(self.user_agent),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise RetrievalError(f"Timeout while fetching {url}") from e
        except httpx.HTTPError as e:
            raise RetrievalError(f"Failed to fetch {url}: {e}") from e

        if not response.is_success:
            raise RetrievalError(f"HTTP error {response.status_code} for {url}")

        html = response.text
        if self.landmark_selector and not BeautifulSoup(html, "html.parser").select_one(self.landmark_selector):
            raise RetrievalError(f"Landmark {self.landmark_selector!r} missing from {url}")

        logger.debug("Direct fetch of %s returned %d characters", url, len(html))
        return html
