# stable_browser/engine/agent/models.py

"""
Pydantic models and simple data classes describing locator specifications,
resolution state, failure causes and the per-command diagnostic objects.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import SelectorValidationError

_STRATEGY_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


# --- Locator strategies ---
class BaseStrategy(BaseModel):
    """Fields shared by every location strategy."""

    model_config = _STRATEGY_CONFIG

    priority: int = Field(1, ge=1, le=3, description="1 (highest) .. 3 (lowest).")
    index: int | None = Field(
        None, ge=0, description="Return the Nth raw match, skipping disambiguation."
    )
    tag_only: bool = Field(False, alias="tagOnly")
    parameter_dependent: bool = Field(False, alias="parameterDependent")

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value):
        return 1 if value is None else value

    def describe(self) -> str:
        """Stable string form, used as the DiagnosticLog key."""
        return json.dumps(
            self.model_dump(exclude_defaults=True, by_alias=True), sort_keys=True
        )


class CssStrategy(BaseStrategy):
    kind: Literal["css"] = Field("css", exclude=True)
    css: str


class RoleStrategy(BaseStrategy):
    kind: Literal["role"] = Field("role", exclude=True)
    role: str
    role_options: dict[str, Any] = Field(default_factory=dict, alias="roleOptions")

    def role_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for `get_by_role`, with `nameReg` compiled to a pattern."""
        options = dict(self.role_options)
        name_reg = options.pop("nameReg", None)
        if name_reg:
            options["name"] = parse_js_regex(name_reg)
        return options


class TextStrategy(BaseStrategy):
    kind: Literal["text"] = Field("text", exclude=True)
    text: str
    climb: int | None = Field(None, ge=0)
    tag: str | None = None
    partial: bool = False
    regex: bool = False
    css: str | None = Field(None, description="Trailing filter applied after climbing.")
    child_css: str | None = Field(None, alias="childCss")


class EngineStrategy(BaseStrategy):
    kind: Literal["engine"] = Field("engine", exclude=True)
    engine: str
    selector: str

    def selector_string(self) -> str:
        return f"{self.engine}={self.selector}"


LocatorStrategy = RoleStrategy | TextStrategy | EngineStrategy | CssStrategy


def parse_js_regex(value: str) -> re.Pattern:
    """Compiles a `/pattern/flags` string (flags: i, m, s) into a Python pattern."""
    match = re.fullmatch(r"/(.*)/([a-z]*)", value, re.DOTALL)
    if not match:
        return re.compile(value)
    flags = 0
    for flag in match.group(2):
        flags |= {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}.get(flag, 0)
    return re.compile(match.group(1), flags)


def parse_strategy(raw: Any) -> LocatorStrategy:
    """
    Turns one raw locator dictionary into its strategy model.

    The first present field out of role, text, engine, css decides the variant.
    """
    if isinstance(raw, BaseStrategy):
        return raw
    if not isinstance(raw, dict):
        raise SelectorValidationError(f"locator expected to be an object, got {raw!r}")
    data = dict(raw)
    if data.get("role"):
        role = data["role"]
        if isinstance(role, (list, tuple)):
            data["role"] = role[0]
            if len(role) > 1 and isinstance(role[1], dict):
                data["role_options"] = dict(role[1])
        return RoleStrategy.model_validate(data)
    if data.get("text") is not None and data.get("text") != "":
        return TextStrategy.model_validate(data)
    if data.get("engine"):
        return EngineStrategy.model_validate(data)
    if data.get("css"):
        return CssStrategy.model_validate(data)
    raise SelectorValidationError(f"unknown locator type: {json.dumps(raw, default=str)}")


# --- Locator specification ---
class FrameHop(BaseModel):
    """One step of a nested iframe chain."""

    css: str


class LocatorSpec(BaseModel):
    """Ordered, prioritized alternatives describing how to find one element."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", arbitrary_types_allowed=True
    )

    locators: list[LocatorStrategy]
    element_name: str | None = Field(None, alias="element_name")
    frame: Any | None = Field(
        None, exclude=True, description="Driver scope used verbatim when given."
    )
    iframe_src: str | None = Field(None, alias="iframe_src")
    frame_locators: list[FrameHop] = Field(default_factory=list, alias="frameLocators")

    @field_validator("locators", mode="before")
    @classmethod
    def _parse_locators(cls, value):
        if not isinstance(value, list) or not value:
            raise SelectorValidationError(
                "selectors.locators expected to be non empty array"
            )
        return [parse_strategy(item) for item in value]

    @field_validator("frame_locators", mode="before")
    @classmethod
    def _default_hops(cls, value):
        return [] if value is None else value

    @property
    def has_frame_chain(self) -> bool:
        return bool(self.iframe_src or self.frame_locators)


# --- Resolution state ---
@dataclass
class ScanState:
    """Mutable record for one resolution pass."""

    start_time: float
    timeout: float
    high_priority_timeout: float
    visible_only_timeout: float
    attempt: int = 0
    high_priority_only: bool = True
    visible_only: bool = True
    locators_count: int = 0
    lazy_scroll_done: bool = False
    reported_rejections: set = field(default_factory=set)

    def elapsed(self, now: float) -> float:
        return now - self.start_time


@dataclass
class Candidate:
    """An element handle plus its bounding box."""

    locator: Any
    box: dict[str, float] | None = None
    unique: bool = False

    @property
    def box_key(self):
        """Identity used by Election; candidates with the same box vote together."""
        if not self.box:
            return None
        return tuple(
            round(float(self.box.get(k, 0)), 1) for k in ("x", "y", "width", "height")
        )


class FailCause(BaseModel):
    """Flag bag describing why resolution or a command failed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text_not_found: bool = False
    locator_not_found: bool = False
    iframe_not_found: bool = False
    found_multiple: bool = False
    visible: bool | None = None
    enabled: bool | None = None
    assertion_failed: bool = False
    fail: bool = False
    last_error: str | None = None
    count: int = 0

    def reset_scan_flags(self):
        """Clears the flags that describe only the most recent scan iteration."""
        self.text_not_found = False
        self.found_multiple = False
        self.visible = None
        self.enabled = None
        self.count = 0


# --- Command level objects ---
class CommandOptions(BaseModel):
    """Per-call switches of the command lifecycle; every boolean defaults to on."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    locate: bool = True
    scroll: bool = True
    screenshot: bool = True
    highlight: bool = True
    throw_error: bool = True
    timeout: float | None = Field(None, gt=0, description="Overrides locate_timeout.")
    screenshot_path: str | None = None

    @field_validator(
        "locate", "scroll", "screenshot", "highlight", "throw_error", mode="before"
    )
    @classmethod
    def _none_is_default(cls, value):
        # Only an explicit False turns a switch off.
        return value is not False


class CommandInfo(BaseModel):
    """
    Diagnostic info object returned by every command and attached to its errors.

    Extra keys (pattern, found_text, attribute...) are allowed so individual
    commands can record what they checked.
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    operation: str
    selectors: dict[str, Any] | None = None
    element_name: str | None = None
    value: Any | None = None
    log: list[str] = Field(default_factory=list)
    fail_cause: FailCause = Field(default_factory=FailCause)
    locator_log: Any | None = Field(None, exclude=True)
    box: dict[str, float] | None = None
    screenshot_id: int | None = None
    screenshot_path: str | None = None
    error_type: str | None = None
    error_message: str | None = None

    def add_log(self, message: str):
        self.log.append(message)

    def to_report_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"fail_cause"})
        data["failCause"] = self.fail_cause.model_dump(by_alias=True)
        if self.locator_log is not None:
            data["locatorLog"] = str(self.locator_log)
        return data


class CommandResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["PASSED", "FAILED"]
    start_time: int
    end_time: int
    message: str | None = None


class CommandReport(BaseModel):
    """The structured record handed to the reporting sink once per command."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    element_name: str | None = Field(None, alias="element_name")
    type: str
    text: str
    value: str | None = None
    screenshot_id: int | None = None
    result: CommandResult
    locator_log: str = ""
    info: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class CommandType(str, Enum):
    """The `type` field of command reports."""

    CLICK = "click_element"
    NAVIGATE = "navigate"
    FILL = "fill_element"
    HOVER = "hover_element"
    SET_CHECK = "set_check"
    SELECT = "select_combobox"
    TYPE_PRESS = "type_press"
    GET_TEXT = "get_text"
    EXTRACT_ATTRIBUTE = "extract_attribute"
    VERIFY_ATTRIBUTE = "verify_element_attribute"
    VERIFY_ELEMENT_CONTAINS_TEXT = "verify_element_contains_text"
    VERIFY_ELEMENT_EXISTS = "verify_element_exists"
    VERIFY_TEXT_IN_PAGE = "verify_text_exists_in_page"
    VERIFY_PAGE_PATH = "verify_page_path"
    GET_PAGE_STATUS = "get_page_status"
