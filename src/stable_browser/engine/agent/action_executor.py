from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ...utils import is_keyboard_event
from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig
from .exceptions import ActionFailedError
from .models import CommandInfo
from .popup_interceptor import PopupInterceptor
from .scripts import GET_PROPERTY_SCRIPT, MOUSE_OVER_SCRIPT, SET_VALUE_SCRIPT

logger = structlog.get_logger(__name__)


class ActionExecutor:
    """
    Executes one action (click, fill, hover...) on a resolved Locator.

    Every action has exactly one fallback path. Before the fallback runs,
    known popups are dismissed since they are the usual reason a native
    interaction fails.
    """

    def __init__(
        self,
        page: Page,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        popup_interceptor: PopupInterceptor | None = None,
    ):
        if not page:
            raise ValueError("Page object is required for ActionExecutor.")
        self.page = page
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK
        self.popup_interceptor = popup_interceptor or PopupInterceptor(
            page, self.config.popups
        )

    @property
    def _timeout_ms(self) -> float:
        return self.config.action_timeout * 1000

    async def execute_action(
        self, action: str, locator: Locator, info: CommandInfo, **kwargs
    ) -> Any:
        action_method = self._get_action_method(action)
        logger.debug("Performing action.", action=action, element=info.element_name)
        return await action_method(locator, info, **kwargs)

    def _get_action_method(self, action: str) -> Callable[..., Awaitable[Any]]:
        method = getattr(self, f"_perform_{action}", None)
        if method is None:
            raise ActionFailedError(f"Unsupported action: {action}")
        return method

    async def _with_fallback(
        self,
        action: str,
        info: CommandInfo,
        primary: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Awaitable[Any]],
        fallback_name: str,
    ) -> Any:
        try:
            return await primary()
        except PlaywrightError as e:
            logger.warning(
                "Native action failed, trying fallback.",
                action=action,
                fallback=fallback_name,
                error=str(e).splitlines()[0] if str(e) else type(e).__name__,
            )
            await self.popup_interceptor.dismiss()
            info.add_log(f"{action} failed, will try {fallback_name}")
            try:
                return await fallback()
            except PlaywrightError as fallback_error:
                raise ActionFailedError(
                    f"{action} failed: {fallback_error}", info=info
                ) from e

    async def _settle(self):
        if self.config.post_action_delay:
            await self.clock.sleep(self.config.post_action_delay)

    async def _perform_click(self, locator: Locator, info: CommandInfo) -> None:
        await self._with_fallback(
            "click",
            info,
            lambda: locator.click(timeout=self._timeout_ms),
            lambda: locator.dispatch_event("click"),
            "dispatching a click event",
        )
        await self._settle()

    async def _perform_click_type(
        self, locator: Locator, info: CommandInfo, value: str, enter: bool = False
    ) -> None:
        async def primary():
            await locator.click(timeout=self._timeout_ms)
            if is_keyboard_event(value):
                await self.page.keyboard.press(value)
            else:
                await locator.fill("", timeout=self._timeout_ms)
                await self.page.keyboard.type(value)

        await self._with_fallback(
            "click_type",
            info,
            primary,
            lambda: locator.evaluate(SET_VALUE_SCRIPT, {"value": value}),
            "setting the value directly",
        )
        if enter:
            await self.page.keyboard.press("Enter")
        await self._settle()

    async def _perform_fill(
        self, locator: Locator, info: CommandInfo, value: str, enter: bool = False
    ) -> None:
        await self._with_fallback(
            "fill",
            info,
            lambda: locator.fill(value, timeout=self._timeout_ms),
            lambda: locator.evaluate(SET_VALUE_SCRIPT, {"value": value}),
            "setting the value directly",
        )
        if enter:
            await locator.press("Enter")
        await self._settle()

    async def _perform_hover(self, locator: Locator, info: CommandInfo) -> None:
        await self._with_fallback(
            "hover",
            info,
            lambda: locator.hover(timeout=self._timeout_ms),
            lambda: locator.evaluate(MOUSE_OVER_SCRIPT),
            "dispatching a mouseover event",
        )
        await self._settle()

    async def _perform_set_checked(
        self, locator: Locator, info: CommandInfo, checked: bool = True
    ) -> None:
        await self._with_fallback(
            "set_checked",
            info,
            lambda: locator.set_checked(checked, timeout=self._timeout_ms),
            lambda: locator.set_checked(checked, timeout=self._timeout_ms, force=True),
            "force",
        )

    async def _perform_select_option(
        self, locator: Locator, info: CommandInfo, values: str | list[str]
    ) -> list[str]:
        return await self._with_fallback(
            "select_option",
            info,
            lambda: locator.select_option(values, timeout=self._timeout_ms),
            lambda: locator.select_option(
                values, timeout=self._timeout_ms, force=True
            ),
            "force",
        )

    async def _perform_get_text(self, locator: Locator, info: CommandInfo) -> str:
        text = await self._with_fallback(
            "get_text",
            info,
            lambda: locator.inner_text(timeout=self._timeout_ms),
            lambda: locator.text_content(timeout=self._timeout_ms),
            "text content",
        )
        return text or ""

    async def _perform_extract_attribute(
        self, locator: Locator, info: CommandInfo, attribute: str
    ) -> str | None:
        async def read_property():
            return await locator.evaluate(GET_PROPERTY_SCRIPT, {"name": attribute})

        value = await self._with_fallback(
            "extract_attribute",
            info,
            lambda: locator.get_attribute(attribute, timeout=self._timeout_ms),
            read_property,
            "the element property",
        )
        if value is None:
            # Live properties (value, checked) are not always reflected as attributes.
            value = await read_property()
        return value
