import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from liftwatch.core.config import settings
from liftwatch.fetch.base import BaseStrategy, RetrievalError

logger = logging.getLogger(__name__)

# Flags for running Chromium inside containers without a usable sandbox or /dev/shm
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


class BrowserStrategy(BaseStrategy):
    """
    Render the page in headless Chromium so JavaScript bot checks can run,
    then capture the markup once the landmark element shows up.
    """

    name = "browser"

    def __init__(
        self,
        landmark_selector: str,
        user_agent: str = settings.USER_AGENT,
        headless: bool = settings.PLAYWRIGHT_HEADLESS,
        launch_timeout_ms: int = settings.BROWSER_LAUNCH_TIMEOUT_MS,
        navigation_timeout_ms: int = settings.NAVIGATION_TIMEOUT_MS,
        wait_timeout_ms: int = settings.JS_WAIT_TIMEOUT_MS,
        viewport: dict = None,
    ):
        self.landmark_selector = landmark_selector
        self.user_agent = user_agent
        self.headless = headless
        self.launch_timeout_ms = launch_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.wait_timeout_ms = wait_timeout_ms
        self.viewport = viewport or {"width": settings.VIEWPORT_WIDTH, "height": settings.VIEWPORT_HEIGHT}

    async def fetch(self, url: str) -> str:
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(
                    headless=self.headless,
                    args=CHROMIUM_ARGS,
                    timeout=self.launch_timeout_ms,
                )
                try:
                    return await self._render(browser, url)
                finally:
                    await _close_quietly(browser)
        except PlaywrightTimeout as e:
            raise RetrievalError(f"Timeout while rendering {url}: {e}") from e
        except PlaywrightError as e:
            raise RetrievalError(f"Browser failed on {url}: {e}") from e

    async def _render(self, browser, url: str) -> str:
        context = await browser.new_context(user_agent=self.user_agent, viewport=self.viewport)
        page = await context.new_page()

        await page.goto(url, timeout=self.navigation_timeout_ms, wait_until="domcontentloaded")
        try:
            await page.wait_for_selector(self.landmark_selector, timeout=self.wait_timeout_ms)
        except PlaywrightTimeout as e:
            raise RetrievalError(
                f"Landmark {self.landmark_selector!r} did not appear on {url} within {self.wait_timeout_ms}ms"
            ) from e

        html = await page.content()
        logger.debug("Rendered %s (%d characters)", url, len(html))
        return html


async def _close_quietly(browser) -> None:
    try:
        await browser.close()
    except PlaywrightError as e:
        logger.warning("Browser close failed: %s", e)
