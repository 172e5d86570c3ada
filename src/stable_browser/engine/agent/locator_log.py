"""
Per-resolution record of what each location strategy observed over time.
"""

import math
from dataclasses import dataclass
from enum import Enum

from ...utils import env_flag
from ..clock import SYSTEM_CLOCK, Clock

SUPPRESS_ERRORS_ENV = "STABLE_BROWSER_SUPPRESS_ERRORS"


class LocatorStatus(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    FOUND_NOT_ENABLED = "FOUND_NOT_ENABLED"
    FOUND_NOT_VISIBLE = "FOUND_NOT_VISIBLE"
    FOUND_NOT_UNIQUE = "FOUND_NOT_UNIQUE"
    FOUND = "FOUND"
    ERROR = "ERROR"


@dataclass
class StatusInterval:
    start: float
    end: float
    status: LocatorStatus


class LocatorLog:
    """
    Maps each strategy (by its string form) to the intervals during which it
    reported one status. Repeating a status extends the open interval; a
    different status closes it and opens a new one.

    Rendering is empty when `suppress` is set or STABLE_BROWSER_SUPPRESS_ERRORS
    is true.
    """

    def __init__(
        self, mission: str = "", clock: Clock | None = None, suppress: bool = False
    ):
        self.clock = clock or SYSTEM_CLOCK
        self.suppress = suppress
        self.mission = mission
        self.start_time = self.clock.now()
        self.events: dict[str, list[StatusInterval]] = {}

    def set_locator_search_status(self, locator: str, status: LocatorStatus):
        now = self.clock.now()
        intervals = self.events.setdefault(locator, [])
        if intervals and intervals[-1].status == status:
            intervals[-1].end = now
            return
        if intervals:
            intervals[-1].end = now
        intervals.append(StatusInterval(start=now, end=now, status=status))

    def last_status(self, locator: str) -> LocatorStatus | None:
        intervals = self.events.get(locator)
        return intervals[-1].status if intervals else None

    def to_string(self) -> str:
        if self.suppress or env_flag(SUPPRESS_ERRORS_ENV):
            return ""
        lines = [self.mission]
        for i, (locator, intervals) in enumerate(self.events.items()):
            lines.append(f"#{i + 1} {locator}")
            for interval in intervals:
                offset = math.trunc(interval.start - self.start_time)
                duration = math.trunc(interval.end - interval.start)
                lines.append(f"  {offset}s {duration}s {interval.status.value}")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.to_string()
