from typing import Any

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from .base_provider import BaseBrowserProvider

logger = structlog.get_logger(__name__)

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


class LocalBrowserProvider(BaseBrowserProvider):
    """Launches a local browser with Playwright; one context, one page."""

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        context_options: dict[str, Any] | None = None,
    ):
        if browser_type not in SUPPORTED_BROWSERS:
            raise ValueError(f"Unsupported browser_type: {browser_type}")
        self.browser_type = browser_type
        self.headless = headless
        self.context_options = dict(context_options or {})
        self.playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None

    async def get_browser(self) -> tuple[Browser, Page]:
        logger.info(
            "Launching local browser.",
            browser_type=self.browser_type,
            headless=self.headless,
        )
        self.playwright = await async_playwright().start()
        launcher = getattr(self.playwright, self.browser_type)
        self.browser = await launcher.launch(headless=self.headless)
        self.context = await self.browser.new_context(**self.context_options)
        page = await self.context.new_page()
        return self.browser, page

    async def close(self):
        if self.browser and self.browser.is_connected():
            logger.info("Closing local browser.", browser_type=self.browser_type)
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.browser = None
        self.context = None
        self.playwright = None
