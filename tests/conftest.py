from pathlib import Path

import pytest

from stable_browser.engine.agent.agent_session import AgentSession
from stable_browser.engine.agent.models import CommandInfo
from stable_browser.engine.config import EngineConfig
from stable_browser.engine.reporting import MemoryReportingSink


class FakeClock:
    """Virtual time: `sleep` returns immediately and advances `now`."""

    def __init__(self, start: float = 1000.0):
        self.current = start
        self.sleeps = []

    def now(self) -> float:
        return self.current

    def wall_ms(self) -> int:
        return int(self.current * 1000)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float):
        self.current += seconds


@pytest.fixture(autouse=True)
def no_suppressed_errors(monkeypatch):
    """Diagnostic output is always rendered unless a test opts in."""
    monkeypatch.delenv("STABLE_BROWSER_SUPPRESS_ERRORS", raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def screenshot_dir(tmp_path: Path) -> Path:
    return tmp_path / "screenshots"


@pytest.fixture
def config(screenshot_dir: Path) -> EngineConfig:
    return EngineConfig(screenshot_dir=screenshot_dir)


@pytest.fixture
def sink() -> MemoryReportingSink:
    return MemoryReportingSink()


@pytest.fixture
def info() -> CommandInfo:
    return CommandInfo(operation="test")


@pytest.fixture
def make_session(config: EngineConfig, clock: FakeClock, sink: MemoryReportingSink):
    """Builds an initialized AgentSession around a FakePage."""

    async def _make(page, **overrides) -> AgentSession:
        session = AgentSession(
            config=overrides.pop("config", config),
            clock=clock,
            sink=sink,
            **overrides,
        )
        return await session.initialize(page)

    return _make
