# src/stable_browser/utils.py
import os
from pathlib import Path

# --- Centralized Path Constant ---
# Default home for run artifacts (screenshots, report files).
STABLE_BROWSER_HOME = Path(
    os.getenv("STABLE_BROWSER_HOME", Path.home() / ".stable_browser")
)

SENSITIVE_PREFIXES = ("secret:", "totp:", "mask:")


def env_flag(name: str, default: bool = False) -> bool:
    """Reads a boolean toggle from the environment ("true", "1", "yes")."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def mask_value(value):
    """
    Hides the payload of sensitive values so they never reach a report.

    `secret:abc` -> `secret:****`; anything without a known prefix is returned as is.
    """
    if not isinstance(value, str):
        return value
    for prefix in SENSITIVE_PREFIXES:
        if value.startswith(prefix):
            return f"{prefix}****"
    return value


def default_value_resolver(value: str) -> str:
    """Turns a reported value into the literal written to the page."""
    if isinstance(value, str) and value.startswith("mask:"):
        return value[len("mask:") :]
    return value


def is_keyboard_event(value: str) -> bool:
    """True when the value names a key (or a `Key+...` chord) rather than text."""
    if not isinstance(value, str) or not value:
        return False
    return any(value == key or value.startswith(key + "+") for key in KEYBOARD_EVENTS)


KEYBOARD_EVENTS = (
    "ALT",
    "AltGraph",
    "CapsLock",
    "Control",
    "Fn",
    "FnLock",
    "Hyper",
    "Meta",
    "NumLock",
    "ScrollLock",
    "Shift",
    "Super",
    "Symbol",
    "SymbolLock",
    "Enter",
    "Tab",
    "ArrowDown",
    "ArrowLeft",
    "ArrowRight",
    "ArrowUp",
    "End",
    "Home",
    "PageDown",
    "PageUp",
    "Backspace",
    "Clear",
    "Copy",
    "CrSel",
    "Cut",
    "Delete",
    "EraseEof",
    "ExSel",
    "Insert",
    "Paste",
    "Redo",
    "Undo",
    "Accept",
    "Again",
    "Attn",
    "Cancel",
    "ContextMenu",
    "Escape",
    "Execute",
    "Find",
    "Finish",
    "Help",
    "Pause",
    "Play",
    "Props",
    "Select",
    "ZoomIn",
    "ZoomOut",
    "PrintScreen",
    "F1",
    "F2",
    "F3",
    "F4",
    "F5",
    "F6",
    "F7",
    "F8",
    "F9",
    "F10",
    "F11",
    "F12",
    "MediaPlayPause",
    "MediaStop",
    "MediaTrackNext",
    "MediaTrackPrevious",
    "AudioVolumeDown",
    "AudioVolumeMute",
    "AudioVolumeUp",
)
