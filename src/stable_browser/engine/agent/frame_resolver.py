from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..clock import SYSTEM_CLOCK, Clock
from ..config import EngineConfig
from .exceptions import IframeNotFoundError
from .models import CommandInfo, LocatorSpec

logger = structlog.get_logger(__name__)


class FrameResolver:
    """
    Resolves the document or nested iframe a scan must run against.

    Frame handles are never cached between calls: every resolution walks the
    chain again and probes each hop for liveness.
    """

    def __init__(
        self,
        page: Page,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ):
        self.page = page
        self.config = config or EngineConfig()
        self.clock = clock or SYSTEM_CLOCK

    async def resolve_scope(
        self, spec: LocatorSpec, info: CommandInfo, timeout: float | None = None
    ) -> Any:
        if spec.frame is not None:
            return spec.frame
        if not spec.has_frame_chain:
            return self.page

        timeout = self.config.locate_timeout if timeout is None else timeout
        start = self.clock.now()
        target = spec.iframe_src or " >> ".join(hop.css for hop in spec.frame_locators)
        while True:
            scope = await self._walk_chain(spec)
            if scope is not None:
                logger.debug("Frame scope resolved.", frame=target)
                return scope

            info.add_log(f"unable to locate iframe {target}")
            if self.clock.now() - start > timeout:
                info.fail_cause.iframe_not_found = True
                info.fail_cause.fail = True
                info.fail_cause.last_error = f"unable to locate iframe {target}"
                logger.error("Iframe not found.", frame=target, timeout=timeout)
                raise IframeNotFoundError(f"unable to locate iframe {target}", info=info)
            await self.clock.sleep(self.config.poll_interval)

    async def _walk_chain(self, spec: LocatorSpec) -> Any:
        scope = None
        if spec.frame_locators:
            scope = self.page
            for hop in spec.frame_locators:
                scope = scope.frame_locator(hop.css)
                if not await self._probe(scope, hop.css):
                    scope = None
                    break
        if scope is None and spec.iframe_src:
            src = spec.iframe_src
            scope = self.page.frame(url=lambda url: src in url)
        return scope

    async def _probe(self, frame_scope: Any, css: str) -> bool:
        """Confirms one hop is attached within the per-hop timeout."""
        try:
            await frame_scope.locator(":root").wait_for(
                state="attached", timeout=self.config.frame_hop_timeout * 1000
            )
            return True
        except PlaywrightError as e:
            logger.debug("Frame hop probe failed.", frame=css, error=str(e))
            return False
