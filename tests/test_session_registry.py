import pytest

from fakes import E, FakePage
from stable_browser.engine.agent.exceptions import SessionNotFoundError
from stable_browser.engine.providers import BrowserManager, LocalBrowserProvider
from stable_browser.session_registry import SessionRegistry


@pytest.fixture
def registry(config, clock, sink):
    return SessionRegistry(config, clock, sink)


@pytest.mark.asyncio
async def test_create_and_swap(registry):
    main = await registry.create("main", page=FakePage())
    admin = await registry.create("admin", page=FakePage())

    assert registry.active is admin
    assert registry.names() == ["main", "admin"]

    assert registry.swap("main") is main
    assert registry.active_name == "main"


@pytest.mark.asyncio
async def test_duplicate_name_is_rejected(registry):
    await registry.create("main", page=FakePage())

    with pytest.raises(ValueError, match="already exists"):
        await registry.create("main", page=FakePage())


def test_unknown_session(registry):
    with pytest.raises(SessionNotFoundError):
        registry.get("ghost")
    with pytest.raises(KeyError):
        registry.swap("ghost")
    with pytest.raises(SessionNotFoundError, match="No active session"):
        registry.active


@pytest.mark.asyncio
async def test_sessions_act_on_their_own_page(registry, sink):
    first = FakePage(E("button", text="One", id="b"))
    second = FakePage(E("button", text="Two", id="b"))
    await registry.create("first", page=first)
    await registry.create("second", page=second)

    await registry.active.click({"locators": [{"css": "#b"}]})

    assert "click" in second.body.children[0].events
    assert "click" not in first.body.children[0].events
    assert len(sink.reports) == 1


@pytest.mark.asyncio
async def test_provider_launch_and_close(registry, mocker):
    page = FakePage()
    provider = mocker.AsyncMock()
    provider.get_browser.return_value = (mocker.MagicMock(), page)

    session = await registry.create("remote", provider=provider)

    assert session.page is page
    await registry.close("remote")
    provider.close.assert_awaited_once()
    assert registry.names() == []
    assert registry.active_name is None


@pytest.mark.asyncio
async def test_default_provider_is_local(registry, mocker):
    provider = mocker.AsyncMock()
    provider.get_browser.return_value = (mocker.MagicMock(), FakePage())
    get_provider = mocker.patch.object(
        BrowserManager, "get_provider", return_value=provider
    )

    await registry.create("main")

    get_provider.assert_called_once_with("local")


@pytest.mark.asyncio
async def test_close_moves_active_session(registry):
    await registry.create("a", page=FakePage())
    await registry.create("b", page=FakePage())

    await registry.close("b")

    assert registry.active_name == "a"
    await registry.close_all()
    assert registry.names() == []


def test_provider_factory_validation():
    assert isinstance(BrowserManager.get_provider("local"), LocalBrowserProvider)
    with pytest.raises(ValueError, match="Unsupported browser provider"):
        BrowserManager.get_provider("grid")
    with pytest.raises(ValueError, match="Unsupported browser_type"):
        LocalBrowserProvider(browser_type="netscape")
