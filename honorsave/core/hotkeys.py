"""Global hotkeys — pynput hook thread marshalled onto the Qt thread."""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger
from PySide6.QtCore import QObject, Qt, Signal

from honorsave.logger import hotkey_logger


def key_name(key: Any) -> str | None:
    """Normalise a pynput ``Key`` / ``KeyCode`` to a lowercase name like ``"f5"``."""
    name = getattr(key, "name", None)
    if name:
        return str(name).lower()
    char = getattr(key, "char", None)
    return char.lower() if char else None


class HotkeyBridge(QObject):
    """
    Maps global key presses to callbacks.

    The keyboard hook fires on its own OS thread; it only emits
    ``key_triggered``, which is delivered through a queued connection so the
    callbacks always run on the thread that owns this object.
    """

    key_triggered = Signal(str)

    def __init__(
        self,
        bindings: dict[str, Callable[[], None]],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._bindings = {name.lower(): callback for name, callback in bindings.items()}
        self._listener = None
        self.key_triggered.connect(self._dispatch, Qt.ConnectionType.QueuedConnection)

    @property
    def bound_keys(self) -> list[str]:
        return sorted(self._bindings)

    def start(self) -> None:
        from pynput import keyboard

        self._listener = keyboard.Listener(on_press=self.on_press, suppress=False)
        self._listener.daemon = True
        self._listener.start()
        logger.info(f"Global hotkeys active: {', '.join(k.upper() for k in self.bound_keys)}")

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    def on_press(self, key: Any) -> None:
        name = key_name(key)
        if name in self._bindings:
            self.key_triggered.emit(name)

    def _dispatch(self, name: str) -> None:
        callback = self._bindings.get(name)
        if callback is None:
            return
        hotkey_logger.debug(f"Hotkey {name.upper()} pressed")
        callback()
