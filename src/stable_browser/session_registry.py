import structlog
from playwright.async_api import Page

from .engine.agent.agent_session import AgentSession
from .engine.agent.exceptions import SessionNotFoundError
from .engine.clock import Clock
from .engine.config import EngineConfig
from .engine.providers.base_provider import BaseBrowserProvider
from .engine.providers.browser_manager import BrowserManager
from .engine.reporting import ReportingSink

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """
    Named AgentSessions with one active session at a time.

    Each registry instance owns its sessions; create one per test run or
    worker instead of sharing module state.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        sink: ReportingSink | None = None,
    ):
        self.config = config or EngineConfig()
        self.clock = clock
        self.sink = sink
        self._sessions: dict[str, AgentSession] = {}
        self._providers: dict[str, BaseBrowserProvider] = {}
        self._active: str | None = None

    async def create(
        self,
        name: str,
        page: Page | None = None,
        provider: BaseBrowserProvider | None = None,
    ) -> AgentSession:
        """
        Registers a session for `page`, launching a browser through `provider`
        (a local one by default) when no page is given. The new session
        becomes the active one.
        """
        if name in self._sessions:
            raise ValueError(f"Session '{name}' already exists.")
        if page is None:
            provider = provider or BrowserManager.get_provider("local")
            _, page = await provider.get_browser()
            self._providers[name] = provider

        session = AgentSession(config=self.config, clock=self.clock, sink=self.sink)
        await session.initialize(page)
        self._sessions[name] = session
        self._active = name
        logger.info("Session created.", session=name)
        return session

    def get(self, name: str) -> AgentSession:
        try:
            return self._sessions[name]
        except KeyError:
            raise SessionNotFoundError(f"Session '{name}' not found.") from None

    def swap(self, name: str) -> AgentSession:
        """Makes the named session the active one."""
        session = self.get(name)
        self._active = name
        logger.debug("Active session changed.", session=name)
        return session

    @property
    def active(self) -> AgentSession:
        if self._active is None:
            raise SessionNotFoundError("No active session.")
        return self._sessions[self._active]

    @property
    def active_name(self) -> str | None:
        return self._active

    def names(self) -> list[str]:
        return list(self._sessions)

    async def close(self, name: str):
        """Forgets the session and closes the browser it launched, if any."""
        self.get(name)
        del self._sessions[name]
        provider = self._providers.pop(name, None)
        if provider is not None:
            await provider.close()
        if self._active == name:
            self._active = next(iter(self._sessions), None)
        logger.info("Session closed.", session=name)

    async def close_all(self):
        for name in list(self._sessions):
            await self.close(name)
