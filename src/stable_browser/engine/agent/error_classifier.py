"""
Maps a failure onto a fixed taxonomy of human readable error types.

Locally derived causes (the FailCause flags gathered during resolution) win
over driver message matching, which wins over runtime error names.
"""

from typing import Any

from pydantic import BaseModel

from .models import CommandInfo, FailCause

UNKNOWN_ERROR = "UnknownError"

# (error type, lowercase substrings), checked in order.
_DRIVER_PATTERNS = [
    ("TimeoutError", ("timeout",)),
    (
        "NetworkError",
        (
            "connect econnrefused",
            "net::",
            "network",
            "connection refused",
            "failed to fetch",
        ),
    ),
    (
        "SelectorError",
        (
            "no element matches selector",
            "no node found for selector",
            "resolved to",
            "element not found",
        ),
    ),
    (
        "FrameError",
        (
            "frame was detached",
            "frame not found",
            "execution context was destroyed",
        ),
    ),
    (
        "ElementStateError",
        (
            "element is not clickable",
            "element is outside of viewport",
            "element is not visible",
            "element is disabled",
        ),
    ),
    (
        "BrowserContextError",
        ("target closed", "browser has been closed", "connection closed"),
    ),
    ("ScreenshotError", ("failed to save screenshot", "screenshot")),
    (
        "TypeError",
        ("cannot type", "element is not an <input>", "element is not focusable"),
    ),
    ("EvaluationError", ("evaluation failed", "cannot execute in detached frame")),
    ("AssertionError", ("expect(", "assertion")),
]

# Python exception class name -> generic runtime error name.
_RUNTIME_NAMES = {
    "SyntaxError": "SyntaxError",
    "ReferenceError": "ReferenceError",
    "NameError": "ReferenceError",
    "UnboundLocalError": "ReferenceError",
    "TypeError": "TypeError",
    "RangeError": "RangeError",
    "IndexError": "RangeError",
    "OverflowError": "RangeError",
}

_RUNTIME_PHRASES = [
    ("SyntaxError", "syntax error"),
    ("ReferenceError", "reference error"),
    ("TypeError", "type error"),
    ("RangeError", "range error"),
]


class ErrorClassification(BaseModel):
    error_type: str
    error_message: str | None = None


def _error_name(error: BaseException) -> str:
    # Playwright reports the JS error name on its Error objects.
    name = getattr(error, "name", None)
    return name if isinstance(name, str) and name else type(error).__name__


def _classify_from_fail_cause(
    error: BaseException, fail_cause: FailCause | None
) -> ErrorClassification:
    if fail_cause is None:
        return ErrorClassification(error_type=UNKNOWN_ERROR, error_message=str(error))
    checks = [
        (fail_cause.enabled is False, "ElementDisabled"),
        (fail_cause.visible is False, "ElementNotVisible"),
        (fail_cause.text_not_found, "TextNotFoundError"),
        (fail_cause.iframe_not_found, "IframeNotFoundError"),
        (fail_cause.locator_not_found, "ElementNotFoundError"),
        (fail_cause.found_multiple, "MultipleElementsFoundError"),
        (fail_cause.assertion_failed, "AssertionError"),
    ]
    for applies, error_type in checks:
        if not applies:
            continue
        message = fail_cause.last_error
        if error_type == "MultipleElementsFoundError" and message is None:
            message = f"Found {fail_cause.count} elements"
        return ErrorClassification(error_type=error_type, error_message=message)
    return ErrorClassification(error_type=UNKNOWN_ERROR, error_message=str(error))


def classify_driver_error(error: BaseException) -> ErrorClassification:
    message = str(error)
    lowered = message.lower()
    name = _error_name(error)
    if name == "TimeoutError":
        return ErrorClassification(error_type="TimeoutError", error_message=message)
    for error_type, needles in _DRIVER_PATTERNS:
        if any(needle in lowered for needle in needles):
            return ErrorClassification(error_type=error_type, error_message=message)
    if "enoent" in lowered and "screenshots" in lowered:
        return ErrorClassification(error_type="ScreenshotError", error_message=message)
    if name == "AssertionError":
        return ErrorClassification(error_type="AssertionError", error_message=message)
    return ErrorClassification(error_type=UNKNOWN_ERROR, error_message=message)


def classify_runtime_error(error: BaseException) -> ErrorClassification:
    message = str(error)
    lowered = message.lower()
    for klass in type(error).__mro__:
        if klass.__name__ in _RUNTIME_NAMES:
            return ErrorClassification(
                error_type=_RUNTIME_NAMES[klass.__name__], error_message=message
            )
    name = _error_name(error)
    if name in _RUNTIME_NAMES:
        return ErrorClassification(error_type=_RUNTIME_NAMES[name], error_message=message)
    for error_type, phrase in _RUNTIME_PHRASES:
        if phrase in lowered:
            return ErrorClassification(error_type=error_type, error_message=message)
    return ErrorClassification(error_type=UNKNOWN_ERROR, error_message=message)


def classify_error(error: BaseException, info: Any = None) -> ErrorClassification:
    """
    Classifies an error given the command's diagnostic info (a CommandInfo,
    or a plain dict carrying `fail_cause`). Exception groups are classified
    from their first inner exception.
    """
    inner = getattr(error, "exceptions", None)
    if isinstance(error, BaseExceptionGroup) and inner:
        return classify_error(inner[0], info)

    fail_cause = None
    if isinstance(info, CommandInfo):
        fail_cause = info.fail_cause
    elif isinstance(info, dict):
        raw = info.get("fail_cause") or info.get("failCause")
        if isinstance(raw, FailCause):
            fail_cause = raw
        elif isinstance(raw, dict):
            fail_cause = FailCause.model_validate(raw)

    classification = _classify_from_fail_cause(error, fail_cause)
    if classification.error_type == UNKNOWN_ERROR:
        classification = classify_driver_error(error)
    if classification.error_type == UNKNOWN_ERROR:
        classification = classify_runtime_error(error)
    return classification
