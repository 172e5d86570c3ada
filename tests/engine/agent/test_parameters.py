import pytest

from stable_browser.engine.agent.exceptions import SelectorValidationError
from stable_browser.engine.agent.models import LocatorSpec
from stable_browser.engine.agent.parameters import (
    fix_using_params,
    resolve_parameters,
    validate_selectors,
)


@pytest.mark.parametrize(
    "selectors, message",
    [
        (None, "selectors is null"),
        ({}, "selectors.locators is null"),
        ({"locators": "#id"}, "selectors.locators expected to be array"),
        ({"locators": []}, "selectors.locators expected to be non empty array"),
    ],
)
def test_validate_selectors_rejects_malformed_specs(selectors, message):
    with pytest.raises(SelectorValidationError, match=message):
        validate_selectors(selectors)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        validate_selectors(None)


def test_fix_using_params_replaces_both_placeholder_forms():
    text = fix_using_params("{user} / {_user} / {missing}", {"user": "bob"})

    assert text == "bob / bob / {missing}"


def test_fix_using_params_leaves_non_strings_alone():
    assert fix_using_params(None, {"a": 1}) is None
    assert fix_using_params("{a}", None) == "{a}"


def test_resolve_parameters_substitutes_recursively_without_mutating_input():
    selectors = {
        "element_name": "button {id}",
        "locators": [
            {"css": "#{id}"},
            {"role": ["button", {"name": "Hello {_user}"}]},
            {"text": "{missing}"},
        ],
    }

    spec = resolve_parameters(selectors, {"id": "submit", "user": "bob"})

    assert spec.element_name == "button submit"
    assert spec.locators[0].css == "#submit"
    assert spec.locators[1].role_options["name"] == "Hello bob"
    assert spec.locators[2].text == "{missing}"
    assert selectors["locators"][0]["css"] == "#{id}"
    assert selectors["element_name"] == "button {id}"


def test_resolve_parameters_accepts_a_spec_model_and_keeps_its_frame():
    frame = object()
    spec = LocatorSpec.model_validate(
        {"locators": [{"css": "#row-{n}", "priority": 2}], "frameLocators": [{"css": "#f"}]}
    )
    spec.frame = frame

    resolved = resolve_parameters(spec, {"n": 3})

    assert resolved is not spec
    assert resolved.locators[0].css == "#row-3"
    assert resolved.locators[0].priority == 2
    assert resolved.frame is frame
    assert resolved.frame_locators[0].css == "#f"
    assert spec.locators[0].css == "#row-{n}"


def test_resolve_parameters_keeps_dict_frame_out_of_validation():
    sentinel = object()

    resolved = resolve_parameters({"locators": [{"css": "a"}], "frame": sentinel})

    assert resolved.frame is sentinel
