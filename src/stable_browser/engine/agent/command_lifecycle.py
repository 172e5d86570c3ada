"""
Pre-command, action, error and report phases shared by every command.

A command body receives a CommandState holding the resolved element and the
literal value to write; everything around it (locating, scrolling,
screenshots, highlight, error classification, report emission) lives here.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ...utils import default_value_resolver, mask_value
from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig
from ..reporting import JSON_MEDIA_TYPE, ReportingSink
from .error_classifier import classify_error
from .exceptions import StableBrowserError
from .locator_log import LocatorLog
from .locator_resolver import LocatorResolver
from .models import (
    CommandInfo,
    CommandOptions,
    CommandReport,
    CommandResult,
    LocatorSpec,
)
from .parameters import fix_using_params, validate_selectors
from .screenshots import ScreenshotRecorder
from .scripts import HIGHLIGHT_SCRIPT

logger = structlog.get_logger(__name__)

Selectors = LocatorSpec | dict[str, Any]


@dataclass
class CommandState:
    """Everything one command invocation works with; discarded after the report."""

    info: CommandInfo
    options: CommandOptions
    selectors: Selectors | None = None
    params: dict[str, Any] | None = None
    value: str | None = None
    element: Locator | None = None
    result: Any = None


def _selectors_for_report(selectors: Selectors | None) -> dict[str, Any] | None:
    if selectors is None:
        return None
    if isinstance(selectors, LocatorSpec):
        return selectors.model_dump(mode="json", by_alias=True)
    return {k: v for k, v in selectors.items() if k != "frame"}


def _element_name(selectors: Selectors | None) -> str | None:
    if isinstance(selectors, LocatorSpec):
        return selectors.element_name
    if isinstance(selectors, dict):
        return selectors.get("element_name")
    return None


class CommandLifecycle:
    def __init__(
        self,
        page: Page,
        resolver: LocatorResolver,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        screenshots: ScreenshotRecorder | None = None,
        sink: ReportingSink | None = None,
        value_resolver: Callable[[str], str] = default_value_resolver,
    ):
        self.page = page
        self.resolver = resolver
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK
        self.screenshots = screenshots or ScreenshotRecorder(page, self.config)
        self.sink = sink
        self.value_resolver = value_resolver

    async def run(
        self,
        operation: str,
        report_type: str,
        text: str,
        body: Callable[[CommandState], Awaitable[Any]],
        selectors: Selectors | None = None,
        value: Any = None,
        params: dict[str, Any] | None = None,
        options: CommandOptions | dict[str, Any] | None = None,
        sink: ReportingSink | None = None,
    ) -> CommandInfo:
        """
        Runs one command and always emits its report.

        Returns the CommandInfo. Errors are re-raised with `info` and
        `error_type` attached unless `options.throw_error` is False.
        """
        if not isinstance(options, CommandOptions):
            options = CommandOptions.model_validate(options or {})
        if selectors is not None:
            validate_selectors(selectors)

        start_time = self.clock.wall_ms()
        reported_value = fix_using_params(value, params)
        info = CommandInfo(
            operation=operation,
            selectors=_selectors_for_report(selectors),
            element_name=_element_name(selectors),
            value=mask_value(reported_value),
        )
        info.locator_log = LocatorLog(
            mission=text, clock=self.clock, suppress=self.config.suppress_errors
        )
        state = CommandState(
            info=info,
            options=options,
            selectors=selectors,
            params=params,
            value=(
                self.value_resolver(reported_value)
                if isinstance(reported_value, str)
                else reported_value
            ),
        )

        error: BaseException | None = None
        try:
            await self._pre_command(state)
            state.result = await body(state)
            return info
        except Exception as e:
            error = e
            await self._on_error(state, e)
            if options.throw_error:
                raise
            return info
        finally:
            self._report(
                state,
                report_type=report_type,
                text=text,
                start_time=start_time,
                error=error,
                sink=sink or self.sink,
            )

    async def _pre_command(self, state: CommandState):
        options = state.options
        info = state.info
        if state.selectors is not None and options.locate:
            state.element = await self.resolver.locate(
                state.selectors, info, state.params, options.timeout
            )
            if options.scroll:
                try:
                    await state.element.scroll_into_view_if_needed(
                        timeout=self.config.action_timeout * 1000
                    )
                except PlaywrightError as e:
                    logger.debug("Scroll into view failed.", error=str(e))
        if options.screenshot:
            info.screenshot_id, info.screenshot_path = await self.screenshots.capture(
                info.box, options.screenshot_path
            )
        if state.element is not None and options.highlight:
            await self.highlight(state.element)

    async def highlight(self, element: Locator):
        """Outlines the element; the page reverts it on its own after a delay."""
        try:
            await element.evaluate(
                HIGHLIGHT_SCRIPT, {"durationMs": self.config.highlight_duration_ms}
            )
        except PlaywrightError as e:
            logger.debug("Highlight failed.", error=str(e))

    async def _on_error(self, state: CommandState, error: Exception):
        info = state.info
        if state.options.screenshot:
            info.screenshot_id, info.screenshot_path = await self.screenshots.capture(
                info.box, state.options.screenshot_path
            )
        classification = classify_error(error, info)
        info.error_type = classification.error_type
        info.error_message = classification.error_message
        info.fail_cause.fail = True
        if isinstance(error, StableBrowserError):
            error.info = info
            error.error_type = classification.error_type
        else:
            try:
                error.info = info
                error.error_type = classification.error_type
            except AttributeError:
                logger.debug("Could not attach info to error.", error=type(error).__name__)
        logger.error(
            f"{info.operation} failed",
            element=info.element_name,
            error_type=classification.error_type,
            error=str(error).splitlines()[0] if str(error) else type(error).__name__,
        )

    def _report(
        self,
        state: CommandState,
        report_type: str,
        text: str,
        start_time: int,
        error: BaseException | None,
        sink: ReportingSink | None,
    ):
        if sink is None:
            return
        info = state.info
        result = CommandResult(
            status="FAILED" if error else "PASSED",
            start_time=start_time,
            end_time=self.clock.wall_ms(),
            message=str(error) if error else None,
        )
        value = info.value
        report = CommandReport(
            element_name=info.element_name,
            type=report_type,
            text=text,
            value=None if value is None else str(value),
            screenshot_id=info.screenshot_id,
            result=result,
            locator_log=info.locator_log.to_string() if info.locator_log else "",
            info=info.to_report_dict(),
        )
        sink.attach(report.to_json(), JSON_MEDIA_TYPE)
