"""Browser session lifecycle using patchright.

Rules:
  - One browser + context + page per session, reused across requests
  - Handles are either all set or all cleared (no partial session)
  - start() and close() are idempotent
"""

import logging
from types import TracebackType

from patchright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from browse_bridge.core.config import BrowserConfig

logger = logging.getLogger(__name__)


class BrowserSession:
    """Owns one patchright browser + context + page.

    Usage::

        session = BrowserSession(config)
        await session.start()
        await session.page.goto("https://...")
        await session.close()

    or as ``async with BrowserSession(config) as session: ...``.
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def is_active(self) -> bool:
        return self._browser is not None

    @property
    def browser(self) -> Browser:
        if self._browser is None:
            msg = "BrowserSession not started; call start() first"
            raise RuntimeError(msg)
        return self._browser

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            msg = "BrowserSession not started; call start() first"
            raise RuntimeError(msg)
        return self._context

    @property
    def page(self) -> Page:
        """The single page for this session. Raises if not started."""
        if self._page is None:
            msg = "BrowserSession not started; call start() first"
            raise RuntimeError(msg)
        return self._page

    async def start(self) -> None:
        """Launch browser, context and page, in that order. No-op if live.

        Failures propagate as-is; handles are only published once all
        three exist.
        """
        if self.is_active:
            return

        pw = await async_playwright().start()
        try:
            browser = await pw.chromium.launch(headless=self._config.headless)
            context = await browser.new_context()
            context.set_default_timeout(self._config.timeout_ms)
            page = await context.new_page()
        except Exception:
            # Nothing was published, only the driver needs releasing.
            await pw.stop()
            raise

        self._playwright = pw
        self._browser = browser
        self._context = context
        self._page = page
        logger.info("Browser session started (headless=%s)", self._config.headless)

    async def close(self) -> None:
        """Tear down the session and clear every handle. No-op if idle."""
        if not self.is_active:
            return

        browser, pw = self._browser, self._playwright
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

        try:
            if browser is not None:
                await browser.close()
        finally:
            if pw is not None:
                await pw.stop()
        logger.info("Browser session closed")

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
