from .engine.agent.agent_session import AgentSession
from .engine.agent.error_classifier import ErrorClassification, classify_error
from .engine.agent.exceptions import (
    ElementNotFoundError,
    IframeNotFoundError,
    LocatorResolutionError,
    StableBrowserError,
    VerificationFailedError,
)
from .engine.agent.models import CommandOptions, LocatorSpec
from .engine.config import EngineConfig, load_config
from .session_registry import SessionRegistry

__all__ = [
    "AgentSession",
    "CommandOptions",
    "ElementNotFoundError",
    "EngineConfig",
    "ErrorClassification",
    "IframeNotFoundError",
    "LocatorResolutionError",
    "LocatorSpec",
    "SessionRegistry",
    "StableBrowserError",
    "VerificationFailedError",
    "classify_error",
    "load_config",
]
