"""
Custom exceptions raised by the resolution engine and command lifecycle.

Every error may carry the diagnostic `info` object of the command that raised
it and the classified `error_type` name (see error_classifier).
"""


class StableBrowserError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str = "", info=None, error_type: str | None = None):
        super().__init__(message)
        self.info = info
        self.error_type = error_type


class SelectorValidationError(StableBrowserError, ValueError):
    """The locator specification is malformed; raised before any scanning."""

    pass


class ConfigurationError(StableBrowserError):
    """Error related to engine configuration."""

    pass


class ElementNotFoundError(StableBrowserError):
    """Failed to find a specific element."""

    pass


class LocatorResolutionError(ElementNotFoundError):
    """Resolution timed out or exhausted its restart budget without a unique element."""

    pass


class IframeNotFoundError(ElementNotFoundError):
    """A required iframe could not be entered within the timeout."""

    pass


class ActionFailedError(StableBrowserError):
    """An action (click, fill, etc.) and its fallback both failed."""

    pass


class VerificationFailedError(StableBrowserError):
    """An explicit verification check (text, attribute, page path) failed."""

    pass


class SessionNotFoundError(StableBrowserError, KeyError):
    """No browser session is registered under the requested name."""

    pass
