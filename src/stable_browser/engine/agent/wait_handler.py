import asyncio

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig

logger = structlog.get_logger(__name__)


class WaitHandler:
    """Waits for the page to settle after navigation-triggering actions."""

    LOAD_STATES = ("networkidle", "load", "domcontentloaded")

    def __init__(
        self,
        page: Page,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ):
        if not page:
            raise ValueError("Page object is required for WaitHandler.")
        self.page = page
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK

    async def wait_for_page_load(self, timeout: float | None = None) -> bool:
        """
        Waits for every load state in parallel. A page that never goes network
        idle is not an error: returns False instead of raising.
        """
        timeout_ms = (timeout or self.config.page_load_timeout) * 1000
        if self.page.is_closed():
            logger.warning("Cannot wait for page load, page is closed.")
            return False
        try:
            await asyncio.gather(
                *(
                    self.page.wait_for_load_state(state, timeout=timeout_ms)
                    for state in self.LOAD_STATES
                )
            )
            return True
        except PlaywrightError as e:
            logger.debug("Page did not reach every load state.", error=str(e))
            return False
        finally:
            await self.clock.sleep(self.config.post_action_delay)
