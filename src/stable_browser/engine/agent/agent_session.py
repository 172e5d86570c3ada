import re
from collections.abc import Callable
from typing import Any

import structlog
from playwright.async_api import Locator, Page

from ...utils import default_value_resolver, is_keyboard_event, mask_value
from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig
from ..reporting import ReportingSink
from .action_executor import ActionExecutor
from .candidate_scanner import evaluate_in_scope
from .command_lifecycle import CommandLifecycle, CommandState, Selectors
from .error_classifier import classify_error
from .exceptions import StableBrowserError, VerificationFailedError
from .locator_resolver import LocatorResolver
from .models import CommandInfo, CommandOptions, CommandType
from .parameters import fix_using_params
from .popup_interceptor import PopupInterceptor
from .screenshots import ScreenshotRecorder
from .scripts import TEXT_SEARCH_SCRIPT
from .wait_handler import WaitHandler

logger = structlog.get_logger(__name__)

Options = CommandOptions | dict[str, Any] | None


def _fail_verification(info: CommandInfo, message: str):
    info.fail_cause.assertion_failed = True
    info.fail_cause.last_error = message
    raise VerificationFailedError(message, info=info)


class AgentSession:
    """
    Manages the commands for a single browser page, orchestrating the
    locator resolver, action executor, wait handler and command lifecycle.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        sink: ReportingSink | None = None,
        value_resolver: Callable[[str], str] = default_value_resolver,
    ):
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK
        self.sink = sink
        self.value_resolver = value_resolver
        self.variables: dict[str, Any] = {}
        self.page: Page | None = None
        self.popup_interceptor: PopupInterceptor | None = None
        self.locator_resolver: LocatorResolver | None = None
        self.action_executor: ActionExecutor | None = None
        self.wait_handler: WaitHandler | None = None
        self.lifecycle: CommandLifecycle | None = None

    async def initialize(self, page: Page):
        """Receives the active Page and initializes all helpers."""
        self.page = page
        self.popup_interceptor = PopupInterceptor(page, self.config.popups)
        self.locator_resolver = LocatorResolver(
            page,
            self.config,
            self.clock,
            popup_interceptor=self.popup_interceptor,
        )
        self.action_executor = ActionExecutor(
            page, self.config, self.clock, self.popup_interceptor
        )
        self.wait_handler = WaitHandler(page, self.config, self.clock)
        self.lifecycle = CommandLifecycle(
            page,
            self.locator_resolver,
            self.config,
            self.clock,
            screenshots=ScreenshotRecorder(page, self.config),
            sink=self.sink,
            value_resolver=self.value_resolver,
        )
        logger.info("AgentSession initialized with page and all helpers.")
        return self

    def _require_page(self) -> Page:
        if not self.page or not self.lifecycle:
            raise RuntimeError("AgentSession is not fully initialized.")
        return self.page

    # --- Resolution ---
    async def locate(
        self,
        selectors: Selectors,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Locator:
        """
        Resolves the element without acting on it or emitting a report.

        Failures are raised with `error_type` already classified.
        """
        self._require_page()
        info = CommandInfo(operation="locate")
        try:
            return await self.locator_resolver.locate(selectors, info, params, timeout)
        except StableBrowserError as e:
            classification = classify_error(e, info)
            info.error_type = classification.error_type
            info.error_message = classification.error_message
            e.error_type = classification.error_type
            raise

    # --- Actions ---
    async def click(
        self,
        selectors: Selectors,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            await self.action_executor.execute_action("click", state.element, state.info)
            await self.wait_handler.wait_for_page_load()

        return await self.lifecycle.run(
            "click",
            CommandType.CLICK.value,
            "Click element",
            body,
            selectors=selectors,
            params=params,
            options=options,
            sink=sink,
        )

    async def click_type(
        self,
        selectors: Selectors,
        value: str,
        enter: bool = False,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            await self.action_executor.execute_action(
                "click_type", state.element, state.info, value=state.value, enter=enter
            )
            if enter:
                await self.wait_handler.wait_for_page_load()

        shown = mask_value(fix_using_params(value, params))
        return await self.lifecycle.run(
            "click_type",
            CommandType.FILL.value,
            f"Fill element with value: {shown}" + (" and press enter" if enter else ""),
            body,
            selectors=selectors,
            value=value,
            params=params,
            options=options,
            sink=sink,
        )

    async def fill(
        self,
        selectors: Selectors,
        value: str,
        enter: bool = False,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            await self.action_executor.execute_action(
                "fill", state.element, state.info, value=state.value, enter=enter
            )
            if enter:
                await self.wait_handler.wait_for_page_load()

        shown = mask_value(fix_using_params(value, params))
        return await self.lifecycle.run(
            "fill",
            CommandType.FILL.value,
            f"Fill element with value: {shown}" + (" and press enter" if enter else ""),
            body,
            selectors=selectors,
            value=value,
            params=params,
            options=options,
            sink=sink,
        )

    async def hover(
        self,
        selectors: Selectors,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            await self.action_executor.execute_action("hover", state.element, state.info)

        return await self.lifecycle.run(
            "hover",
            CommandType.HOVER.value,
            "Hover element",
            body,
            selectors=selectors,
            params=params,
            options=options,
            sink=sink,
        )

    async def set_checked(
        self,
        selectors: Selectors,
        checked: bool = True,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            await self.action_executor.execute_action(
                "set_checked", state.element, state.info, checked=checked
            )

        return await self.lifecycle.run(
            "set_checked",
            CommandType.SET_CHECK.value,
            f"{'Check' if checked else 'Uncheck'} element",
            body,
            selectors=selectors,
            value=str(checked).lower(),
            params=params,
            options=options,
            sink=sink,
        )

    async def select_option(
        self,
        selectors: Selectors,
        values: str | list[str],
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()
        if not values:
            raise ValueError("values is null")

        async def body(state: CommandState):
            selected = await self.action_executor.execute_action(
                "select_option", state.element, state.info, values=values
            )
            await self.wait_handler.wait_for_page_load()
            return selected

        shown = values if isinstance(values, str) else ",".join(values)
        return await self.lifecycle.run(
            "select_option",
            CommandType.SELECT.value,
            f"Select option: {shown}",
            body,
            selectors=selectors,
            value=shown,
            params=params,
            options=options,
            sink=sink,
        )

    async def type_text(
        self,
        value: str,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """Types into whatever has focus; key names (`Enter`, `Shift+Tab`) are pressed."""
        page = self._require_page()

        async def body(state: CommandState):
            if is_keyboard_event(state.value):
                await page.keyboard.press(state.value)
            else:
                await page.keyboard.type(state.value)

        shown = mask_value(fix_using_params(value, params))
        return await self.lifecycle.run(
            "type",
            CommandType.TYPE_PRESS.value,
            f"type value: {shown}",
            body,
            value=value,
            params=params,
            options=options,
            sink=sink,
        )

    # --- Reading ---
    async def get_text(
        self,
        selectors: Selectors,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """Returns the info object; the element text is in `info.text`."""
        self._require_page()

        async def body(state: CommandState):
            state.info.text = await self.action_executor.execute_action(
                "get_text", state.element, state.info
            )

        return await self.lifecycle.run(
            "get_text",
            CommandType.GET_TEXT.value,
            "Get element text",
            body,
            selectors=selectors,
            params=params,
            options=options,
            sink=sink,
        )

    async def extract_attribute(
        self,
        selectors: Selectors,
        attribute: str,
        variable: str | None = None,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """Reads an attribute into `info.value` and, when named, into `self.variables`."""
        self._require_page()

        async def body(state: CommandState):
            value = await self.action_executor.execute_action(
                "extract_attribute", state.element, state.info, attribute=attribute
            )
            state.info.attribute = attribute
            state.info.value = value
            if variable:
                self.variables[variable] = value
            return value

        return await self.lifecycle.run(
            "extract_attribute",
            CommandType.EXTRACT_ATTRIBUTE.value,
            f"Extract attribute {attribute}" + (f" to {variable}" if variable else ""),
            body,
            selectors=selectors,
            params=params,
            options=options,
            sink=sink,
        )

    # --- Verifications ---
    async def verify_attribute(
        self,
        selectors: Selectors,
        attribute: str,
        value: str,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()
        shown = mask_value(fix_using_params(value, params))

        async def body(state: CommandState):
            actual = await self.action_executor.execute_action(
                "extract_attribute", state.element, state.info, attribute=attribute
            )
            state.info.attribute = attribute
            state.info.actual_value = actual
            if actual is None or str(actual) != str(state.value):
                _fail_verification(
                    state.info,
                    f"attribute {attribute} is '{actual}', expected '{shown}'",
                )

        return await self.lifecycle.run(
            "verify_attribute",
            CommandType.VERIFY_ATTRIBUTE.value,
            f"Verify element attribute {attribute} equals: {shown}",
            body,
            selectors=selectors,
            value=value,
            params=params,
            options=options,
            sink=sink,
        )

    async def _read_text(self, state: CommandState, climb: int = 0) -> str:
        element = state.element
        if climb and climb > 0:
            element = element.locator("xpath=" + "/".join([".."] * climb))
        return await self.action_executor.execute_action("get_text", element, state.info)

    async def contains_text(
        self,
        selectors: Selectors,
        text: str,
        climb: int = 0,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()
        if not text:
            raise ValueError("text is null")

        shown = mask_value(fix_using_params(text, params))

        async def body(state: CommandState):
            found = await self._read_text(state, climb)
            state.info.found_text = found
            if state.value not in found:
                _fail_verification(state.info, f"element doesn't contain text {shown}")

        return await self.lifecycle.run(
            "contains_text",
            CommandType.VERIFY_ELEMENT_CONTAINS_TEXT.value,
            f"Verify element contains text: {shown}",
            body,
            selectors=selectors,
            value=text,
            params=params,
            options=options,
            sink=sink,
        )

    async def contains_pattern(
        self,
        selectors: Selectors,
        pattern: str,
        text: str,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """
        Checks the element text against `pattern`, where `{text}` stands for
        the escaped `text` argument. Matching is case-insensitive and multiline.
        """
        self._require_page()
        if not pattern:
            raise ValueError("pattern is null")
        if not text:
            raise ValueError("text is null")

        shown = mask_value(fix_using_params(text, params))

        async def body(state: CommandState):
            found = await self._read_text(state)
            expanded = pattern.replace("{text}", re.escape(state.value))
            state.info.pattern = pattern.replace("{text}", re.escape(shown))
            state.info.found_text = found
            if not re.search(expanded, found, re.IGNORECASE | re.MULTILINE):
                _fail_verification(state.info, f"element doesn't contain text {shown}")

        return await self.lifecycle.run(
            "contains_pattern",
            CommandType.VERIFY_ELEMENT_CONTAINS_TEXT.value,
            f"Verify element contains pattern: {pattern}",
            body,
            selectors=selectors,
            value=text,
            params=params,
            options=options,
            sink=sink,
        )

    async def verify_element_exists(
        self,
        selectors: Selectors,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            count = await state.element.count()
            if count != 1:
                state.info.fail_cause.count = count
                _fail_verification(
                    state.info, f"expected exactly one element, found {count}"
                )

        return await self.lifecycle.run(
            "verify",
            CommandType.VERIFY_ELEMENT_EXISTS.value,
            "Verify element exists in page",
            body,
            selectors=selectors,
            params=params,
            options=options,
            sink=sink,
        )

    async def verify_text_exists_in_page(
        self,
        text: str,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """Polls every frame of the page until one of them contains the text."""
        page = self._require_page()
        if not text:
            raise ValueError("text is null")
        shown = mask_value(fix_using_params(text, params))

        async def body(state: CommandState):
            timeout = state.options.timeout or self.config.locate_timeout
            start = self.clock.now()
            while True:
                for frame in page.frames:
                    result = await evaluate_in_scope(
                        frame,
                        TEXT_SEARCH_SCRIPT,
                        {
                            "text": state.value,
                            "tag": None,
                            "regex": False,
                            "partial": True,
                            "ignoreCase": False,
                        },
                    )
                    if result and result.get("count"):
                        state.info.frame_url = frame.url
                        return
                if self.clock.now() - start > timeout:
                    state.info.fail_cause.text_not_found = True
                    state.info.fail_cause.last_error = f"Text {shown} not found in page"
                    raise VerificationFailedError(
                        f"Text {shown} not found in page", info=state.info
                    )
                await self.clock.sleep(self.config.poll_interval)

        return await self.lifecycle.run(
            "verify_text_exists_in_page",
            CommandType.VERIFY_TEXT_IN_PAGE.value,
            "Verify text exists in page",
            body,
            value=text,
            params=params,
            options=options,
            sink=sink,
        )

    async def verify_page_path(
        self,
        path_part: str,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        page = self._require_page()

        async def body(state: CommandState):
            timeout = state.options.timeout or self.config.locate_timeout
            start = self.clock.now()
            state.info.path_part = path_part
            while path_part not in page.url:
                if self.clock.now() - start > timeout:
                    _fail_verification(
                        state.info, f"url {page.url} doesn't contain {path_part}"
                    )
                await self.clock.sleep(self.config.poll_interval)

        return await self.lifecycle.run(
            "verify_page_path",
            CommandType.VERIFY_PAGE_PATH.value,
            "Verify page path",
            body,
            value=path_part,
            options=options,
            sink=sink,
        )

    async def wait_for_page_load(
        self, options: Options = None, sink: ReportingSink | None = None
    ) -> CommandInfo:
        self._require_page()

        async def body(state: CommandState):
            state.info.loaded = await self.wait_handler.wait_for_page_load(
                state.options.timeout
            )

        return await self.lifecycle.run(
            "wait_for_page_load",
            CommandType.GET_PAGE_STATUS.value,
            "Wait for page load",
            body,
            options=options,
            sink=sink,
        )

    # --- Navigation ---
    async def goto(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        options: Options = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        page = self._require_page()

        async def body(state: CommandState):
            await page.goto(state.value, timeout=self.config.navigation_timeout * 1000)
            state.info.loaded = await self.wait_handler.wait_for_page_load(
                state.options.timeout
            )

        return await self.lifecycle.run(
            "goto",
            CommandType.NAVIGATE.value,
            f"Navigate to {mask_value(fix_using_params(url, params))}",
            body,
            value=url,
            params=params,
            options=options,
            sink=sink,
        )

    async def reload_page(
        self, options: Options = None, sink: ReportingSink | None = None
    ) -> CommandInfo:
        page = self._require_page()

        async def body(state: CommandState):
            await page.reload(timeout=self.config.navigation_timeout * 1000)
            state.info.loaded = await self.wait_handler.wait_for_page_load(
                state.options.timeout
            )

        return await self.lifecycle.run(
            "reload_page",
            CommandType.GET_PAGE_STATUS.value,
            "Reload page",
            body,
            options=options,
            sink=sink,
        )
