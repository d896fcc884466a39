"""Push-to-talk hotkey state via a pynput keyboard listener.

The listener records which keys are currently held; the orchestrator polls
``is_pressed()`` and does its own edge detection.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any

from ferry_assist.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def parse_hotkey(name: str) -> Any:
    """Translate a hotkey name into a pynput key.

    Accepted forms:
        - a ``pynput.keyboard.Key`` member name, e.g. ``f9`` or ``scroll_lock``
        - a single character, e.g. ``^``
        - ``vk:<code>`` for a raw virtual key code, e.g. ``vk:222``

    Raises:
        ConfigurationError: If the name cannot be mapped to a key.
    """
    from pynput import keyboard

    value = name.strip()
    if not value:
        raise ConfigurationError("Hotkey is not configured")

    if value.lower().startswith("vk:"):
        try:
            return keyboard.KeyCode.from_vk(int(value[3:], 0))
        except ValueError as e:
            raise ConfigurationError(f"Invalid virtual key code: {value}") from e

    if len(value) == 1:
        return keyboard.KeyCode.from_char(value)

    try:
        return keyboard.Key[value.lower()]
    except KeyError as e:
        raise ConfigurationError(f"Unknown hotkey: {name}") from e


def _vk_only(key: Any) -> int | None:
    """Virtual key code of a key given without a character."""
    if getattr(key, "char", None) is None:
        return getattr(key, "vk", None)
    return None


class KeyStatePoller:
    """
    Report whether the configured hotkey is currently held down.

    A ``vk:`` hotkey is matched by virtual key code alone, whatever
    character the key happens to produce.

    Example:
        >>> poller = KeyStatePoller("f9")
        >>> poller.start()
        >>> poller.is_pressed()
        False
    """

    def __init__(self, hotkey: str) -> None:
        """Initialize the poller.

        Args:
            hotkey: Hotkey name (see parse_hotkey).
        """
        self.hotkey = hotkey
        self._key = parse_hotkey(hotkey)
        self._vk = _vk_only(self._key)
        self._pressed: set[Any] = set()
        self._pressed_vks: set[int] = set()
        self._lock = Lock()
        self._listener: Any = None

    def _canonical(self, key: Any) -> Any:
        if self._listener is not None and key is not None:
            return self._listener.canonical(key)
        return key

    def _on_press(self, key: Any) -> None:
        with self._lock:
            self._pressed.add(self._canonical(key))
            vk = getattr(key, "vk", None)
            if vk is not None:
                self._pressed_vks.add(vk)

    def _on_release(self, key: Any) -> None:
        with self._lock:
            self._pressed.discard(self._canonical(key))
            vk = getattr(key, "vk", None)
            if vk is not None:
                self._pressed_vks.discard(vk)

    def start(self) -> None:
        """Start listening to the keyboard in the background."""
        if self._listener is not None:
            return

        from pynput import keyboard

        self._listener = keyboard.Listener(
            on_press=self._on_press,
            on_release=self._on_release,
        )
        self._key = self._listener.canonical(self._key)
        self._listener.start()
        logger.info(f"Listening for hotkey '{self.hotkey}'")

    def stop(self) -> None:
        """Stop the keyboard listener."""
        if self._listener is None:
            return
        self._listener.stop()
        self._listener = None
        with self._lock:
            self._pressed.clear()
            self._pressed_vks.clear()

    def is_pressed(self) -> bool:
        """Check if the hotkey is held down right now."""
        with self._lock:
            if self._vk is not None:
                return self._vk in self._pressed_vks
            return self._key in self._pressed
