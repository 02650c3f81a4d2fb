"""Playwright browser that hosts the sandbox page."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from ..capture.config import BrowserSettings

logger = logging.getLogger(__name__)


class BrowserFactory:
    """Launches one browser and opens host pages in throwaway contexts.

    Example:
        async with BrowserFactory(config.browser) as factory:
            async with factory.page() as page:
                host = SandboxHost(page, router)
    """

    def __init__(self, settings: Optional[BrowserSettings] = None):
        self.settings = settings or BrowserSettings()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def __aenter__(self) -> "BrowserFactory":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def start(self) -> None:
        """Start Playwright and launch the configured engine."""
        if self.browser is not None:
            return

        self.playwright = await async_playwright().start()
        try:
            browser_type = getattr(self.playwright, self.settings.engine)
            self.browser = await browser_type.launch(headless=self.settings.headless)
        except Exception as e:
            logger.error(f"Failed to launch {self.settings.engine}: {e}")
            await self.stop()
            raise
        logger.info(f"Launched {self.settings.engine} (headless={self.settings.headless})")

    async def stop(self) -> None:
        """Close the browser and stop Playwright; errors are logged."""
        try:
            if self.browser is not None:
                await self.browser.close()
            if self.playwright is not None:
                await self.playwright.stop()
        except Exception as e:
            logger.error(f"Error stopping browser: {e}")
        finally:
            self.browser = None
            self.playwright = None

    @asynccontextmanager
    async def page(self) -> AsyncGenerator[Page, None]:
        """Open a page in a fresh context, closing the context afterwards.

        Raises:
            RuntimeError: If the browser has not been started
        """
        if self.browser is None:
            raise RuntimeError("Browser not started; call start() first")

        context = await self.browser.new_context(
            viewport={'width': self.settings.viewport_width, 'height': self.settings.viewport_height}
        )
        try:
            yield await context.new_page()
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")
