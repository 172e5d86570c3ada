"""
Selector validation and `{param}` substitution for locator specifications.
"""

from typing import Any

import structlog

from .exceptions import SelectorValidationError
from .models import LocatorSpec

logger = structlog.get_logger(__name__)


def validate_selectors(selectors: Any) -> None:
    """Rejects a structurally invalid specification before any scanning happens."""
    if selectors is None:
        raise SelectorValidationError("selectors is null")
    if isinstance(selectors, LocatorSpec):
        if not selectors.locators:
            raise SelectorValidationError(
                "selectors.locators expected to be non empty array"
            )
        return
    if not isinstance(selectors, dict):
        raise SelectorValidationError(
            f"selectors expected to be an object, got {type(selectors).__name__}"
        )
    locators = selectors.get("locators")
    if locators is None:
        raise SelectorValidationError("selectors.locators is null")
    if not isinstance(locators, list):
        raise SelectorValidationError("selectors.locators expected to be array")
    if len(locators) == 0:
        raise SelectorValidationError(
            "selectors.locators expected to be non empty array"
        )


def fix_using_params(text: Any, params: dict[str, Any] | None) -> Any:
    """
    Replaces `{name}` and `{_name}` placeholders with parameter values.
    Placeholders without a matching parameter are left verbatim.
    """
    if not params or not isinstance(text, str):
        return text
    for key, value in params.items():
        replacement = "" if value is None else str(value)
        text = text.replace(f"{{{key}}}", replacement)
        text = text.replace(f"{{_{key}}}", replacement)
    return text


def _substitute(node: Any, params: dict[str, Any]) -> Any:
    if isinstance(node, str):
        return fix_using_params(node, params)
    if isinstance(node, dict):
        return {key: _substitute(value, params) for key, value in node.items()}
    if isinstance(node, (list, tuple)):
        return [_substitute(item, params) for item in node]
    return node


def resolve_parameters(
    selectors: LocatorSpec | dict[str, Any],
    params: dict[str, Any] | None = None,
) -> LocatorSpec:
    """
    Returns a new LocatorSpec with every placeholder substituted.

    The caller's specification is never mutated. A driver `frame` object is
    carried over as is.
    """
    validate_selectors(selectors)
    if isinstance(selectors, LocatorSpec):
        frame = selectors.frame
        raw = selectors.model_dump(by_alias=True, exclude={"frame"})
    else:
        frame = selectors.get("frame")
        raw = {key: value for key, value in selectors.items() if key != "frame"}

    substituted = _substitute(raw, params or {})
    spec = LocatorSpec.model_validate(substituted)
    spec.frame = frame
    if params:
        logger.debug(
            "Resolved locator parameters.",
            element=spec.element_name,
            params=sorted(params.keys()),
        )
    return spec
