# src/stable_browser/engine/config.py
import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

from .agent.exceptions import ConfigurationError
from ..utils import STABLE_BROWSER_HOME

logger = structlog.get_logger(__name__)

ENV_PREFIX = "STABLE_BROWSER_"
DEFAULT_CONFIG_FILE = "stable_browser.yaml"
CONFIG_SECTION = "stable_browser"


class PopupRule(BaseModel):
    """A known overlay and the control that dismisses it."""

    dialog_css: str = Field(..., description="Selector of the overlay container.")
    dismiss_css: str = Field(..., description="Selector of the close/dismiss control.")


class EngineConfig(BaseModel):
    """Every tunable of the resolution engine and command lifecycle (seconds unless noted)."""

    locate_timeout: float = Field(30.0, gt=0, description="Overall resolution timeout.")
    high_priority_timeout: float = Field(
        5.0, ge=0, description="Elapsed time after which priority 3 strategies join."
    )
    visible_only_timeout: float = Field(
        6.0, ge=0, description="Elapsed time after which hidden/disabled matches count."
    )
    frame_hop_timeout: float = Field(5.0, gt=0, description="Per-hop iframe probe.")
    poll_interval: float = Field(1.0, ge=0, description="Backoff between scan iterations.")
    max_locate_attempts: int = Field(3, ge=1, description="Outer passes per locate call.")
    max_popup_restarts: int = Field(
        3, ge=0, description="Popup-triggered restarts per locate call."
    )
    action_timeout: float = Field(10.0, gt=0)
    page_load_timeout: float = Field(15.0, gt=0)
    navigation_timeout: float = Field(60.0, gt=0)
    post_action_delay: float = Field(1.0, ge=0)
    highlight_duration_ms: int = Field(2000, ge=0)
    lazy_load_scroll: bool = False
    suppress_errors: bool = False
    screenshot_dir: Path | None = None
    popups: list[PopupRule] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    def resolved_screenshot_dir(self) -> Path:
        return self.screenshot_dir or (STABLE_BROWSER_HOME / "screenshots")


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a mapping.")
    section = data.get(CONFIG_SECTION, data)
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"'{CONFIG_SECTION}' section in '{path}' must be a mapping."
        )
    return section


def _prefixed(values: dict[str, str | None]) -> dict[str, Any]:
    return {
        key[len(ENV_PREFIX) :].lower(): value
        for key, value in values.items()
        if key.startswith(ENV_PREFIX) and value is not None
    }


def load_config(
    config_path: Path | None = None, env_file: Path | None = None
) -> EngineConfig:
    """
    Builds the EngineConfig from defaults, a YAML file, a .env file and the
    process environment (later sources win).
    """
    merged: dict[str, Any] = {}

    path = Path(config_path) if config_path else Path(DEFAULT_CONFIG_FILE)
    if path.is_file():
        merged.update(_load_yaml(path))
        logger.debug("Loaded engine config file.", path=str(path))
    elif config_path:
        raise ConfigurationError(f"Config file not found: {path}")

    dotenv_path = Path(env_file) if env_file else Path(".env")
    if dotenv_path.is_file():
        merged.update(_prefixed(dotenv_values(dotenv_path)))

    merged.update(_prefixed(dict(os.environ)))

    try:
        return EngineConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engine configuration: {e}") from e
