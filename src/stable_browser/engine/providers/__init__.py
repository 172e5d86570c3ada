from .base_provider import BaseBrowserProvider
from .browser_manager import BrowserManager
from .local_provider import LocalBrowserProvider

__all__ = ["BaseBrowserProvider", "BrowserManager", "LocalBrowserProvider"]
