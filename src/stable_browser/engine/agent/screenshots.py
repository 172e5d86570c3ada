import io
import re
from pathlib import Path

import structlog
from PIL import Image, ImageDraw
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..config import EngineConfig

logger = structlog.get_logger(__name__)

_NUMBERED_PNG = re.compile(r"^(\d+)\.png$")


def next_screenshot_id(directory: Path) -> int:
    """Next free index among the `N.png` files of a directory."""
    if not directory.is_dir():
        return 0
    taken = [
        int(match.group(1))
        for match in (_NUMBERED_PNG.match(p.name) for p in directory.iterdir())
        if match
    ]
    return max(taken) + 1 if taken else 0


def draw_element_box(png: bytes, box: dict[str, float] | None) -> bytes:
    """Outlines the element's bounding box in red."""
    if not box:
        return png
    image = Image.open(io.BytesIO(png))
    draw = ImageDraw.Draw(image)
    x, y = box.get("x", 0), box.get("y", 0)
    draw.rectangle(
        [x, y, x + box.get("width", 0), y + box.get("height", 0)],
        outline="red",
        width=3,
    )
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class ScreenshotRecorder:
    """Writes numbered page screenshots for command reports."""

    def __init__(self, page: Page, config: EngineConfig | None = None):
        self.page = page
        self.config = config or EngineConfig()

    async def capture(
        self,
        box: dict[str, float] | None = None,
        directory: str | None = None,
    ) -> tuple[int | None, str | None]:
        """
        Returns (screenshot id, path). A failed capture is logged and reported
        as (None, None); it never fails the command.
        """
        target_dir = Path(directory) if directory else self.config.resolved_screenshot_dir()
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            screenshot_id = next_screenshot_id(target_dir)
            path = target_dir / f"{screenshot_id}.png"
            png = await self.page.screenshot()
            path.write_bytes(draw_element_box(png, box))
            return screenshot_id, str(path)
        except (PlaywrightError, OSError) as e:
            logger.warning("Failed to save screenshot.", directory=str(target_dir), error=str(e))
            return None, None
