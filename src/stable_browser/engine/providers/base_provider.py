from abc import ABC, abstractmethod

from playwright.async_api import Browser, Page


class BaseBrowserProvider(ABC):
    """Abstract base class for whatever hands a Page to a SessionRegistry."""

    @abstractmethod
    async def get_browser(self) -> tuple[Browser, Page]:
        """Starts (or connects to) a browser and returns it with a fresh Page."""
        raise NotImplementedError

    @abstractmethod
    async def close(self):
        """Releases the browser and any driver resources."""
        raise NotImplementedError
