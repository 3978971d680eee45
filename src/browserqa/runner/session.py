"""
Browser session lifecycle.

Owns the Playwright driver, one browser, its default context and page.
Isolated pages (fresh context per case) are handed out for parallel runs so
concurrently running cases never share a context.

Usage:
    async with BrowserSession(BrowserConfig(browser="firefox")) as session:
        page = session.require_page()
        await page.goto("https://example.com")
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import structlog
from playwright.async_api import async_playwright

from browserqa.config import DEFAULT_BROWSER_CONFIG, BrowserConfig
from browserqa.errors import SessionNotInitializedError

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

logger = structlog.get_logger(__name__)


class BrowserSession:
    """Exclusive owner of one browser, context and page."""

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or DEFAULT_BROWSER_CONFIG
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._log = logger.bind(component="browser_session", browser=self._config.browser)

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def page(self) -> Page | None:
        return self._page

    @property
    def context(self) -> BrowserContext | None:
        return self._context

    @property
    def browser(self) -> Browser | None:
        return self._browser

    @property
    def is_live(self) -> bool:
        """Whether the default page exists and has not been closed."""
        return self._page is not None and not self._page.is_closed()

    @property
    def browser_version(self) -> str:
        if self._browser is None:
            return "unknown"
        return self._browser.version

    def require_page(self) -> Page:
        if self._page is None:
            raise SessionNotInitializedError()
        return self._page

    def context_options(self) -> dict[str, Any]:
        """Keyword arguments for ``browser.new_context``."""
        options: dict[str, Any] = {
            "viewport": self._config.viewport.model_dump(),
            "ignore_https_errors": self._config.ignore_https_errors,
        }
        if self._config.record_video_dir:
            options["record_video_dir"] = self._config.record_video_dir
        options.update(self._config.context_options)
        return options

    async def start(self) -> None:
        """Launch the browser and open the default context and page."""
        if self._page is not None:
            return

        self._log.info("Launching browser", headless=self._config.headless)
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self._config.browser)
            self._browser = await launcher.launch(
                headless=self._config.headless,
                args=list(self._config.args),
            )
            self._context = await self._browser.new_context(**self.context_options())
            self._page = await self._new_page(self._context)
        except Exception as e:
            self._log.error("Browser launch failed", error=str(e))
            await self.cleanup()
            raise

        self._log.info("Browser ready", version=self.browser_version)

    async def _new_page(self, context: BrowserContext) -> Page:
        page = await context.new_page()
        page.set_default_timeout(self._config.timeout)
        return page

    @contextlib.asynccontextmanager
    async def isolated_page(self) -> AsyncIterator[Page]:
        """Yield a page in a fresh context that is closed afterwards."""
        if self._browser is None:
            raise SessionNotInitializedError()

        context = await self._browser.new_context(**self.context_options())
        try:
            yield await self._new_page(context)
        finally:
            try:
                await context.close()
            except Exception as e:
                self._log.warning("Failed to close isolated context", error=str(e))

    async def cleanup(self) -> None:
        """
        Release page, context, browser and driver, in that order.

        Safe to call repeatedly and after a partial start; close errors are
        logged and never raised.
        """
        if self._page is not None:
            try:
                await self._page.close()
            except Exception as e:
                self._log.warning("Failed to close page", error=str(e))
            self._page = None

        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                self._log.warning("Failed to close context", error=str(e))
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                self._log.warning("Failed to close browser", error=str(e))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self._log.warning("Failed to stop playwright", error=str(e))
            self._playwright = None

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()
