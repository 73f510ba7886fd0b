"""
Playwright browser session for form automation.

This module owns the browser lifecycle: launch, one context with the
configured timeouts, one page, and orderly teardown. Everything that
interacts with the form goes through the page it exposes.
"""

from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import Config
from .logging_utils import get_logger, log_step, log_warning

VIEWPORT = {'width': 1400, 'height': 1000}


class FormBrowser:
    """
    Async browser session.

    Example:
        >>> async with FormBrowser(config) as browser:
        ...     await browser.page.goto(url)
    """

    def __init__(self, config: Config):
        """
        Initialize the browser session.

        Args:
            config: Application configuration
        """
        self.config = config
        self.logger = get_logger()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def __aenter__(self) -> 'FormBrowser':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """
        Start Playwright and launch the browser.
        """
        log_step("Starting browser...", self.logger)

        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(headless=self.config.headless)

        self.context = await self.browser.new_context(viewport=VIEWPORT)
        self.context.set_default_timeout(self.config.element_timeout)
        self.context.set_default_navigation_timeout(self.config.navigation_timeout)

        self.page = await self.context.new_page()

        self.logger.debug(f"Browser launched (headless={self.config.headless})")

    async def close(self):
        """
        Close the browser and stop Playwright.
        """
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
        except PlaywrightError as e:
            log_warning(f"Error while closing browser: {e}", self.logger)
        finally:
            if self.playwright:
                await self.playwright.stop()
            self.page = None
            self.context = None
            self.browser = None
            self.playwright = None

        self.logger.debug("Browser closed")

    async def take_screenshot(self, path: str) -> bool:
        """
        Take a full-page screenshot.

        Args:
            path: Path to save the screenshot

        Returns:
            True if the screenshot was written
        """
        if self.page is None:
            return False
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=path, full_page=True)
            self.logger.debug(f"Screenshot saved to {path}")
            return True
        except (PlaywrightError, OSError) as e:
            log_warning(f"Failed to take screenshot: {e}", self.logger)
            return False
