from dataclasses import dataclass, field
from typing import Any

import structlog
from playwright.async_api import Locator

from .locator_log import LocatorLog, LocatorStatus
from .models import (
    Candidate,
    CommandInfo,
    CssStrategy,
    EngineStrategy,
    LocatorStrategy,
    RoleStrategy,
    ScanState,
    TextStrategy,
)
from .scripts import MARKER_ATTRIBUTE, TEXT_SEARCH_SCRIPT

logger = structlog.get_logger(__name__)

# get_by_role keyword arguments, keyed by the spellings accepted in raw specs.
_ROLE_OPTIONS = {
    "name": "name",
    "exact": "exact",
    "checked": "checked",
    "disabled": "disabled",
    "expanded": "expanded",
    "includeHidden": "include_hidden",
    "include_hidden": "include_hidden",
    "level": "level",
    "pressed": "pressed",
    "selected": "selected",
}


@dataclass
class ScanResult:
    """Outcome of scanning one strategy in one scope."""

    candidates: list[Candidate] = field(default_factory=list)
    status: LocatorStatus = LocatorStatus.NOT_FOUND
    error: Exception | None = None
    count: int = 0


def marker_selector(token: str) -> str:
    return f'[{MARKER_ATTRIBUTE}="sb-{token}"]'


async def evaluate_in_scope(scope: Any, script: str, arg: dict[str, Any]) -> Any:
    """Runs a page-level script in a Page, Frame or FrameLocator scope."""
    if hasattr(scope, "evaluate"):
        return await scope.evaluate(script, arg)
    # A FrameLocator has no evaluate; run through the frame's root element.
    wrapped = f"(_root, arg) => ({script})(arg)"
    return await scope.locator(":root").evaluate(wrapped, arg)


class CandidateScanner:
    """
    Turns one LocatorStrategy into zero or more Candidates in a given scope,
    applying the visibility/enablement filter and recording what it saw in
    the LocatorLog.
    """

    async def build_locator(
        self, scope: Any, strategy: LocatorStrategy, info: CommandInfo
    ) -> Locator | None:
        """Returns a Playwright locator for the strategy, or None when a text search finds nothing."""
        if isinstance(strategy, RoleStrategy):
            kwargs = {
                _ROLE_OPTIONS[key]: value
                for key, value in strategy.role_kwargs().items()
                if key in _ROLE_OPTIONS
            }
            return scope.get_by_role(strategy.role, **kwargs)
        if isinstance(strategy, TextStrategy):
            return await self._build_text_locator(scope, strategy, info)
        if isinstance(strategy, EngineStrategy):
            return scope.locator(strategy.selector_string())
        if isinstance(strategy, CssStrategy):
            return scope.locator(strategy.css)
        raise ValueError(f"unknown locator type: {strategy!r}")

    async def _build_text_locator(
        self, scope: Any, strategy: TextStrategy, info: CommandInfo
    ) -> Locator | None:
        climbing = strategy.climb is not None and strategy.climb > 0
        search_tag = None if (climbing and strategy.tag_only) else strategy.tag
        result = await evaluate_in_scope(
            scope,
            TEXT_SEARCH_SCRIPT,
            {
                "text": strategy.text,
                "tag": search_tag,
                "regex": strategy.regex,
                # Climbing searches match partially, the ancestor filter narrows afterwards.
                "partial": strategy.partial or climbing,
                "ignoreCase": False,
            },
        )
        count = (result or {}).get("count", 0)
        if not count:
            info.fail_cause.text_not_found = True
            info.fail_cause.last_error = f"failed to locate element by text: {strategy.text}"
            return None

        marked = scope.locator(marker_selector(result["token"]))
        if climbing:
            ancestor = marked.locator("xpath=" + "/".join([".."] * strategy.climb))
            trailing = strategy.tag if strategy.tag_only else strategy.css
            if not trailing:
                return ancestor
            # The filter may match the climbed ancestor itself or anything below it.
            return ancestor.and_(scope.locator(trailing)).or_(ancestor.locator(trailing))
        if strategy.child_css:
            return marked.locator(strategy.child_css)
        return marked

    async def scan(
        self,
        scope: Any,
        strategy: LocatorStrategy,
        state: ScanState,
        info: CommandInfo,
        locator_log: LocatorLog,
    ) -> ScanResult:
        key = strategy.describe()
        try:
            locator = await self.build_locator(scope, strategy, info)
            if locator is None:
                locator_log.set_locator_search_status(key, LocatorStatus.NOT_FOUND)
                return ScanResult()

            count = await locator.count()
            state.locators_count += count
            if count == 0:
                locator_log.set_locator_search_status(key, LocatorStatus.NOT_FOUND)
                return ScanResult()

            if strategy.index is not None and strategy.index < count:
                element = locator.nth(strategy.index)
                locator_log.set_locator_search_status(key, LocatorStatus.FOUND)
                return ScanResult(
                    candidates=[
                        Candidate(element, await element.bounding_box(), unique=True)
                    ],
                    status=LocatorStatus.FOUND,
                    count=count,
                )

            survivors: list[Candidate] = []
            rejection: LocatorStatus | None = None
            for j in range(count):
                element = locator.nth(j)
                if state.visible_only:
                    reason = None
                    if not await element.is_visible():
                        reason = LocatorStatus.FOUND_NOT_VISIBLE
                        info.fail_cause.visible = False
                    elif not await element.is_enabled():
                        reason = LocatorStatus.FOUND_NOT_ENABLED
                        info.fail_cause.enabled = False
                    if reason is not None:
                        rejection = rejection or reason
                        self._report_rejection(state, info, key, j, reason)
                        continue
                survivors.append(Candidate(element, await element.bounding_box()))

            if not survivors:
                locator_log.set_locator_search_status(key, rejection)
                return ScanResult(status=rejection, count=count)

            if len({c.box_key for c in survivors}) == 1 and survivors[0].box is not None:
                # One element or several handles for the same box.
                candidate = survivors[0]
                candidate.unique = True
                locator_log.set_locator_search_status(key, LocatorStatus.FOUND)
                return ScanResult(
                    candidates=[candidate], status=LocatorStatus.FOUND, count=count
                )
            if len(survivors) == 1:
                survivors[0].unique = True
                locator_log.set_locator_search_status(key, LocatorStatus.FOUND)
                return ScanResult(
                    candidates=survivors, status=LocatorStatus.FOUND, count=count
                )

            info.fail_cause.found_multiple = True
            info.fail_cause.count = len(survivors)
            locator_log.set_locator_search_status(key, LocatorStatus.FOUND_NOT_UNIQUE)
            logger.debug(
                "Strategy matched several elements.", strategy=key, count=len(survivors)
            )
            return ScanResult(status=LocatorStatus.FOUND_NOT_UNIQUE, count=len(survivors))
        except Exception as e:
            locator_log.set_locator_search_status(key, LocatorStatus.ERROR)
            logger.debug("Unable to use locator.", strategy=key, error=str(e))
            return ScanResult(status=LocatorStatus.ERROR, error=e)

    def _report_rejection(
        self,
        state: ScanState,
        info: CommandInfo,
        key: str,
        index: int,
        reason: LocatorStatus,
    ):
        marker = (key, index)
        if marker in state.reported_rejections:
            return
        state.reported_rejections.add(marker)
        what = "not visible" if reason == LocatorStatus.FOUND_NOT_VISIBLE else "not enabled"
        info.add_log(f"element {key} index {index} is {what}")
