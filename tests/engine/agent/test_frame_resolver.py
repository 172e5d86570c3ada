import pytest

from fakes import E, FakeFrame, FakePage
from stable_browser.engine.agent.error_classifier import classify_error
from stable_browser.engine.agent.exceptions import IframeNotFoundError
from stable_browser.engine.agent.frame_resolver import FrameResolver
from stable_browser.engine.agent.locator_resolver import LocatorResolver
from stable_browser.engine.agent.models import LocatorSpec


def nested_frames_page():
    deep_button = E("button", text="Deep", box=(3, 3, 30, 10))
    inner = E("iframe", id="inner", content=[deep_button], content_url="https://in.test/")
    outer = E("iframe", id="outer", content=[inner], content_url="https://out.test/")
    return FakePage(outer)


def _spec(**fields):
    return LocatorSpec.model_validate({"locators": [{"css": "button"}], **fields})


@pytest.mark.asyncio
async def test_page_is_the_scope_without_frame_info(config, clock, info):
    page = FakePage()

    scope = await FrameResolver(page, config, clock).resolve_scope(_spec(), info)

    assert scope is page


@pytest.mark.asyncio
async def test_explicit_frame_is_used_verbatim(config, clock, info):
    frame = object()
    spec = _spec(frameLocators=[{"css": "#outer"}])
    spec.frame = frame

    scope = await FrameResolver(FakePage(), config, clock).resolve_scope(spec, info)

    assert scope is frame


@pytest.mark.asyncio
async def test_frame_locator_chain(config, clock, info):
    page = nested_frames_page()
    spec = _spec(frameLocators=[{"css": "#outer"}, {"css": "#inner"}])

    scope = await FrameResolver(page, config, clock).resolve_scope(spec, info)

    assert await scope.locator("button").count() == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_text_resolution_through_nested_frames(config, clock, info):
    page = nested_frames_page()
    selectors = {
        "locators": [{"text": "Deep"}],
        "frameLocators": [{"css": "#outer"}, {"css": "#inner"}],
    }

    locator = await LocatorResolver(page, config, clock).locate(selectors, info)

    assert await locator.bounding_box() == {"x": 3, "y": 3, "width": 30, "height": 10}


@pytest.mark.asyncio
async def test_iframe_src_match(config, clock, info):
    page = FakePage(
        E(
            "iframe",
            id="pay",
            content=[E("button", text="Pay", id="pay-btn")],
            content_url="https://pay.test/widget",
        )
    )

    scope = await FrameResolver(page, config, clock).resolve_scope(
        _spec(iframe_src="pay.test"), info
    )

    assert isinstance(scope, FakeFrame)
    assert scope.url == "https://pay.test/widget"
    assert await scope.locator("#pay-btn").count() == 1


@pytest.mark.asyncio
async def test_missing_iframe_times_out(config, clock, info):
    page = FakePage(E("div", id="outer"))
    spec = _spec(frameLocators=[{"css": "#outer"}])

    with pytest.raises(IframeNotFoundError) as exc_info:
        await FrameResolver(page, config, clock).resolve_scope(spec, info, timeout=2)

    assert exc_info.value.info is info
    assert sum(clock.sleeps) == 3
    assert info.fail_cause.iframe_not_found is True
    assert info.log[0] == "unable to locate iframe #outer"
    assert classify_error(exc_info.value, info).error_type == "IframeNotFoundError"


@pytest.mark.asyncio
async def test_iframe_attached_late(config, clock, info):
    page = FakePage(E("div", id="host"))
    host = page.body.children[0]
    original_sleep = clock.sleep

    async def sleep_then_attach(seconds):
        await original_sleep(seconds)
        host.append(E("iframe", id="late", content=[E("button", text="Go")]))

    clock.sleep = sleep_then_attach
    spec = _spec(frameLocators=[{"css": "#late"}])

    scope = await FrameResolver(page, config, clock).resolve_scope(spec, info)

    assert await scope.locator("button").count() == 1
    assert clock.sleeps == [1.0]
