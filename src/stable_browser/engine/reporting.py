import json
import threading
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)

JSON_MEDIA_TYPE = "application/json"


class ReportingSink(Protocol):
    """Receives one attachment per command (the JSON report)."""

    def attach(self, data: str, media_type: str) -> None: ...


class MemoryReportingSink:
    """Keeps attachments in memory; handy for tests and interactive use."""

    def __init__(self):
        self.attachments: list[tuple[str, str]] = []

    def attach(self, data: str, media_type: str) -> None:
        self.attachments.append((data, media_type))

    @property
    def reports(self) -> list[dict[str, Any]]:
        return [
            json.loads(data)
            for data, media_type in self.attachments
            if media_type == JSON_MEDIA_TYPE
        ]


class JsonlReportingSink:
    """Appends one JSON line per attachment to a file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def attach(self, data: str, media_type: str) -> None:
        payload = json.loads(data) if media_type == JSON_MEDIA_TYPE else data
        line = json.dumps({"media_type": media_type, "data": payload}, default=str)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug("Report attached.", path=str(self.path), media_type=media_type)
