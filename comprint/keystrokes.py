from __future__ import annotations

from .errors import KeystrokesUnavailable
from .logging import JsonLogger

# Control characters with a dedicated key, by pynput Key attribute name.
SPECIAL_KEYS = {
    0x08: "backspace",
    0x09: "tab",
    0x0A: "enter",
    0x20: "space",
}

PLAIN_CHARS = frozenset(b",.0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")


def load_keyboard():
    """Import pynput's keyboard module, or return None if it cannot be loaded.

    pynput connects to a display server (or uinput) at import time, so it is
    imported only when keystroke emission is requested. Install it with the
    `keystrokes` extra.
    """
    try:
        from pynput import keyboard
    except Exception:
        return None
    return keyboard


class KeystrokeEmitter:
    """Re-types received characters into the focused window.

    Only letters, digits, space, comma, period, backspace, tab and newline are
    typed. Letters always go out lower-case (the key is pressed without shift).
    Anything else is dropped, and backend failures are logged, never raised."""
    def __init__(self, logger: JsonLogger, controller=None, keys=None):
        if controller is None or keys is None:
            keyboard = load_keyboard()
            if keyboard is None:
                raise KeystrokesUnavailable(
                    "Error: /keystrokes needs pynput and a desktop session (pip install 'com-printer[keystrokes]')"
                )
            controller = controller or keyboard.Controller()
            keys = keys or keyboard.Key
        self.logger = logger
        self.controller = controller
        self.keys = keys

    def key_for(self, byte: int):
        """Return what to tap for `byte`, or None if it is outside the typed subset."""
        name = SPECIAL_KEYS.get(byte)
        if name is not None:
            return getattr(self.keys, name)
        if byte in PLAIN_CHARS:
            return chr(byte).lower()
        return None

    def emit(self, byte: int):
        key = self.key_for(byte)
        if key is None:
            return
        try:
            self.controller.tap(key)
        except Exception as e:
            self.logger.debug("keystroke_error", byte=byte, error=str(e))
