import pytest

from stable_browser.engine.agent.exceptions import SelectorValidationError
from stable_browser.engine.agent.models import (
    CommandOptions,
    CssStrategy,
    EngineStrategy,
    FailCause,
    LocatorSpec,
    RoleStrategy,
    TextStrategy,
    parse_strategy,
)


def test_parse_strategy_role_list_form():
    strategy = parse_strategy({"role": ["button", {"name": "Login"}], "priority": 2})

    assert isinstance(strategy, RoleStrategy)
    assert strategy.role == "button"
    assert strategy.role_options == {"name": "Login"}
    assert strategy.priority == 2


def test_parse_strategy_first_present_field_wins():
    """A locator carrying text and css is a text search with a trailing filter."""
    strategy = parse_strategy({"text": "Login", "climb": 1, "css": "button"})

    assert isinstance(strategy, TextStrategy)
    assert strategy.climb == 1
    assert strategy.css == "button"


def test_parse_strategy_engine_and_css():
    engine = parse_strategy({"engine": "xpath", "selector": "//a[@id='x']"})
    css = parse_strategy({"css": "#login", "index": 0})

    assert isinstance(engine, EngineStrategy)
    assert engine.selector_string() == "xpath=//a[@id='x']"
    assert isinstance(css, CssStrategy)
    assert css.index == 0


def test_parse_strategy_unknown_type():
    with pytest.raises(SelectorValidationError, match="unknown locator type"):
        parse_strategy({"foo": "bar"})


def test_priority_defaults_to_one_and_is_bounded():
    assert parse_strategy({"css": "a", "priority": None}).priority == 1
    with pytest.raises(ValueError):
        parse_strategy({"css": "a", "priority": 4})


def test_role_name_regex_is_compiled():
    strategy = RoleStrategy(role="button", role_options={"nameReg": "/log ?in/i"})

    kwargs = strategy.role_kwargs()

    assert "nameReg" not in kwargs
    assert kwargs["name"].search("Please LOGIN here")


def test_describe_is_stable():
    assert CssStrategy(css="#a").describe() == '{"css": "#a"}'
    assert (
        parse_strategy({"text": "Hi", "priority": 2}).describe()
        == '{"priority": 2, "text": "Hi"}'
    )


def test_locator_spec_aliases():
    spec = LocatorSpec.model_validate(
        {
            "locators": [{"css": "#pay"}],
            "element_name": "Pay",
            "frameLocators": [{"css": "#outer"}],
        }
    )

    assert spec.element_name == "Pay"
    assert [hop.css for hop in spec.frame_locators] == ["#outer"]
    assert spec.has_frame_chain


def test_command_options_switches_default_on():
    options = CommandOptions.model_validate({"screenshot": None, "throwError": False})

    assert options.locate and options.scroll and options.highlight
    assert options.screenshot is True
    assert options.throw_error is False
    assert CommandOptions(throw_error=False).throw_error is False


def test_fail_cause_reset_keeps_terminal_flags():
    cause = FailCause(
        text_not_found=True, locator_not_found=True, visible=False, count=2, fail=True
    )

    cause.reset_scan_flags()

    assert cause.text_not_found is False
    assert cause.visible is None
    assert cause.count == 0
    assert cause.locator_not_found is True
    assert cause.fail is True
