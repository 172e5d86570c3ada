import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import E, FakePage
from stable_browser.engine.agent.action_executor import ActionExecutor
from stable_browser.engine.agent.exceptions import ActionFailedError
from stable_browser.engine.config import PopupRule


@pytest.fixture
def executor(config, clock):
    return ActionExecutor(FakePage(), config, clock)


def test_executor_requires_a_page(config):
    with pytest.raises(ValueError, match="Page object is required"):
        ActionExecutor(None, config)


@pytest.mark.asyncio
async def test_unsupported_action(executor, info, mocker):
    with pytest.raises(ActionFailedError, match="Unsupported action: drag"):
        await executor.execute_action("drag", mocker.AsyncMock(), info)


@pytest.mark.asyncio
async def test_fallback_failure_raises_action_failed(executor, info, mocker):
    locator = mocker.AsyncMock()
    locator.click.side_effect = PlaywrightError("Element is not clickable")
    locator.dispatch_event.side_effect = PlaywrightError("Element is detached")

    with pytest.raises(ActionFailedError) as exc_info:
        await executor.execute_action("click", locator, info)

    assert exc_info.value.info is info
    assert "Element is detached" in str(exc_info.value)
    locator.dispatch_event.assert_awaited_once_with("click")


@pytest.mark.asyncio
async def test_non_driver_errors_are_not_swallowed(executor, info, mocker):
    locator = mocker.AsyncMock()
    locator.hover.side_effect = RuntimeError("bug")

    with pytest.raises(RuntimeError, match="bug"):
        await executor.execute_action("hover", locator, info)

    locator.evaluate.assert_not_awaited()


@pytest.mark.asyncio
async def test_popups_are_dismissed_before_the_fallback(config, clock, info):
    banner = E("div", E("button", text="OK", id="promo-ok"), id="promo")
    target = E("button", text="Buy", id="buy", fail=("click",))
    page = FakePage(banner, target)
    rules = [PopupRule(dialog_css="#promo", dismiss_css="#promo-ok")]
    executor = ActionExecutor(page, config.model_copy(update={"popups": rules}), clock)

    await executor.execute_action("click", page.locator("#buy"), info)

    assert banner.children[0].events == ["click"]
    assert target.events == ["dispatch:click"]
    assert clock.sleeps == [config.post_action_delay]


@pytest.mark.asyncio
async def test_get_text_falls_back_to_text_content(executor, info, mocker):
    locator = mocker.AsyncMock()
    locator.inner_text.side_effect = PlaywrightError("Element is not visible")
    locator.text_content.return_value = "raw text"

    assert await executor.execute_action("get_text", locator, info) == "raw text"


@pytest.mark.asyncio
async def test_fill_settles_with_and_without_enter(config, clock, info):
    page = FakePage(E("input", id="q"))
    executor = ActionExecutor(page, config, clock)

    await executor.execute_action("fill", page.locator("#q"), info, value="shoes")
    await executor.execute_action(
        "fill", page.locator("#q"), info, value="boots", enter=True
    )

    assert clock.sleeps == [config.post_action_delay, config.post_action_delay]
    assert page.body.children[0].events == ["fill", "fill", "press:Enter"]
