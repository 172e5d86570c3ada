import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..config import PopupRule

logger = structlog.get_logger(__name__)


class PopupInterceptor:
    """Dismisses known overlays (cookie banners, promo dialogs) configured as PopupRules."""

    def __init__(self, page: Page, rules: list[PopupRule] | None = None):
        self.page = page
        self.rules = list(rules or [])

    async def dismiss(self) -> bool:
        """Returns True when at least one overlay was dismissed."""
        dismissed = False
        for rule in self.rules:
            try:
                dialog = self.page.locator(rule.dialog_css).first
                if not await dialog.is_visible():
                    continue
                button = self.page.locator(rule.dismiss_css).first
                if not await button.is_visible():
                    logger.warning(
                        "Popup is open but its dismiss control was not found.",
                        dialog=rule.dialog_css,
                        dismiss=rule.dismiss_css,
                    )
                    continue
                await button.click()
                dismissed = True
                logger.info("Dismissed popup.", dialog=rule.dialog_css)
            except PlaywrightError as e:
                logger.warning(
                    "Error closing popup.", dialog=rule.dialog_css, error=str(e)
                )
        return dismissed
