from enum import Enum
from typing import Any

import structlog
from playwright.async_api import Locator, Page

from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig
from .candidate_scanner import CandidateScanner, ScanResult
from .election import elect
from .exceptions import LocatorResolutionError
from .frame_resolver import FrameResolver
from .locator_log import LocatorLog
from .models import (
    Candidate,
    CommandInfo,
    LocatorSpec,
    LocatorStrategy,
    RoleStrategy,
    ScanState,
)
from .parameters import resolve_parameters
from .popup_interceptor import PopupInterceptor
from .scripts import LAZY_SCROLL_SCRIPT

logger = structlog.get_logger(__name__)


class ResolutionState(str, Enum):
    SCANNING = "SCANNING"
    RERUN = "RERUN"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"


def group_by_priority(spec: LocatorSpec) -> dict[int, list[LocatorStrategy]]:
    """
    Splits strategies into priority tiers 1..3, keeping their order.

    Priority-1 role strategies match their name exactly; a copy with partial
    name matching is appended to tier 2.
    """
    tiers: dict[int, list[LocatorStrategy]] = {1: [], 2: [], 3: []}
    relaxed: list[LocatorStrategy] = []
    for strategy in spec.locators:
        if isinstance(strategy, RoleStrategy) and strategy.priority == 1:
            exact = strategy.model_copy(
                update={"role_options": {**strategy.role_options, "exact": True}}
            )
            partial = strategy.model_copy(
                update={
                    "priority": 2,
                    "role_options": {**strategy.role_options, "exact": False},
                },
                deep=True,
            )
            tiers[1].append(exact)
            relaxed.append(partial)
        else:
            tiers[strategy.priority].append(strategy)
    tiers[2].extend(relaxed)
    return tiers


class LocatorResolver:
    """
    Escalation controller: scans the priority tiers of a LocatorSpec until
    exactly one element is resolved, widening the search as time passes.
    """

    def __init__(
        self,
        page: Page,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        scanner: CandidateScanner | None = None,
        popup_interceptor: PopupInterceptor | None = None,
        frame_resolver: FrameResolver | None = None,
    ):
        if not page:
            raise ValueError("Page object is required for LocatorResolver.")
        self.page = page
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK
        self.scanner = scanner or CandidateScanner()
        self.popup_interceptor = popup_interceptor or PopupInterceptor(
            page, self.config.popups
        )
        self.frame_resolver = frame_resolver or FrameResolver(
            page, self.config, self.clock
        )

    async def locate(
        self,
        selectors: LocatorSpec | dict[str, Any],
        info: CommandInfo,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Locator:
        """
        Resolves the specification to a single Playwright locator.

        Raises LocatorResolutionError when no unique element is found in time
        or the restart budget is exhausted, IframeNotFoundError when the frame
        chain cannot be entered.
        """
        spec = resolve_parameters(selectors, params)
        timeout = self.config.locate_timeout if timeout is None else timeout
        if info.locator_log is None:
            info.locator_log = LocatorLog(
                mission=f"{info.operation} {spec.element_name or ''}".strip(),
                clock=self.clock,
                suppress=self.config.suppress_errors,
            )
        locator_log: LocatorLog = info.locator_log

        tiers = group_by_priority(spec)
        first_priority = spec.locators[0].priority
        deadline = self.clock.now() + timeout
        popup_restarts = 0

        for attempt in range(1, self.config.max_locate_attempts + 1):
            remaining = max(deadline - self.clock.now(), 0)
            scope = await self.frame_resolver.resolve_scope(spec, info, remaining)
            state = ScanState(
                start_time=self.clock.now(),
                timeout=remaining,
                high_priority_timeout=self.config.high_priority_timeout,
                visible_only_timeout=self.config.visible_only_timeout,
                attempt=attempt,
            )
            check_popups = popup_restarts < self.config.max_popup_restarts
            outcome, candidate = await self._run_pass(
                scope, tiers, first_priority, state, info, locator_log, check_popups
            )

            if outcome == ResolutionState.SUCCEEDED:
                # Rejections seen on the way describe other strategies, not this element.
                info.fail_cause.reset_scan_flags()
                info.box = candidate.box
                logger.debug(
                    "Element resolved.",
                    element=spec.element_name,
                    attempt=attempt,
                    box=candidate.box,
                )
                return candidate.locator

            if outcome == ResolutionState.TIMED_OUT:
                fail_cause = info.fail_cause
                fail_cause.locator_not_found = True
                fail_cause.fail = True
                fail_cause.last_error = "failed to locate unique element"
                info.add_log(
                    f"failed to locate unique element, total elements found {state.locators_count}"
                )
                logger.error(
                    "Unable to locate unique element.",
                    element=spec.element_name,
                    found=state.locators_count,
                    timeout=timeout,
                )
                raise LocatorResolutionError(
                    f"failed to locate unique element\n{locator_log.to_string()}",
                    info=info,
                )

            popup_restarts += 1
            info.add_log(f"popup dismissed, restarting resolution ({attempt})")

        info.fail_cause.locator_not_found = True
        info.fail_cause.fail = True
        info.fail_cause.last_error = "unable to locate element"
        logger.error(
            "Resolution restarted too many times.",
            element=spec.element_name,
            attempts=self.config.max_locate_attempts,
        )
        raise LocatorResolutionError(
            f"unable to locate element {spec.element_name or ''}".strip()
            + f"\n{locator_log.to_string()}",
            info=info,
        )

    async def _run_pass(
        self,
        scope: Any,
        tiers: dict[int, list[LocatorStrategy]],
        first_priority: int,
        state: ScanState,
        info: CommandInfo,
        locator_log: LocatorLog,
        check_popups: bool,
    ) -> tuple[ResolutionState, Candidate | None]:
        while True:
            if check_popups and await self.popup_interceptor.dismiss():
                return ResolutionState.RERUN, None

            state.locators_count = 0
            info.fail_cause.reset_scan_flags()

            candidates = await self._scan_tier(scope, tiers[1], state, info, locator_log)
            if not candidates:
                candidates = await self._scan_tier(
                    scope, tiers[2], state, info, locator_log
                )
            if not candidates and (not state.high_priority_only or first_priority == 3):
                candidates = await self._scan_tier(
                    scope, tiers[3], state, info, locator_log
                )

            if len(candidates) == 1:
                return ResolutionState.SUCCEEDED, candidates[0]
            if len(candidates) > 1:
                return ResolutionState.SUCCEEDED, elect(candidates)

            elapsed = state.elapsed(self.clock.now())
            if elapsed > state.timeout:
                return ResolutionState.TIMED_OUT, None
            if elapsed > state.high_priority_timeout and state.high_priority_only:
                state.high_priority_only = False
                logger.debug("Including low priority locators.", elapsed=elapsed)
                await self._lazy_load_scroll(state)
            if elapsed > state.visible_only_timeout and state.visible_only:
                state.visible_only = False
                logger.debug("Including hidden or disabled matches.", elapsed=elapsed)
            await self.clock.sleep(self.config.poll_interval)

    async def _scan_tier(
        self,
        scope: Any,
        strategies: list[LocatorStrategy],
        state: ScanState,
        info: CommandInfo,
        locator_log: LocatorLog,
    ) -> list[Candidate]:
        candidates: list[Candidate] = []
        for strategy in strategies:
            result: ScanResult = await self.scanner.scan(
                scope, strategy, state, info, locator_log
            )
            if result.error is not None:
                logger.debug(
                    "Retrying locator against the top level page.",
                    strategy=strategy.describe(),
                )
                result = await self.scanner.scan(
                    self.page, strategy, state, info, locator_log
                )
                if result.error is not None:
                    logger.info(
                        "Unable to use locator (second try).",
                        strategy=strategy.describe(),
                        error=str(result.error),
                    )
                    continue
            candidates.extend(c for c in result.candidates if c.unique)
        return candidates

    async def _lazy_load_scroll(self, state: ScanState):
        if not self.config.lazy_load_scroll or state.lazy_scroll_done:
            return
        state.lazy_scroll_done = True
        try:
            await self.page.evaluate(LAZY_SCROLL_SCRIPT)
        except Exception as e:
            logger.debug("Lazy load scroll failed.", error=str(e))
