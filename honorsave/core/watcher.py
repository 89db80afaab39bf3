"""Save-folder watcher — debounced, read-only refresh trigger."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from PySide6.QtCore import QFileSystemWatcher, QObject, QTimer, Signal


class SaveWatcher(QObject):
    """
    Watches the live save root and each profile folder in it.

    Every change restarts a single-shot timer, so a burst of writes from the
    game produces one ``refresh_requested`` once it has gone quiet.
    """

    refresh_requested = Signal()

    def __init__(self, save_root: Path, debounce_ms: int = 500, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._root = save_root
        self._watcher = QFileSystemWatcher(self)
        self._watcher.directoryChanged.connect(self._on_changed)
        self._watcher.fileChanged.connect(self._on_changed)

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self._on_settled)

    @property
    def pending(self) -> bool:
        return self._timer.isActive()

    def watched_paths(self) -> list[str]:
        return list(self._watcher.directories())

    def start(self) -> bool:
        if not self._root.is_dir():
            logger.warning(f"Not watching missing save folder: {self._root}")
            return False
        self._sync_paths()
        logger.debug(f"Watching {len(self.watched_paths())} folder(s) under {self._root}")
        return True

    def stop(self) -> None:
        self._timer.stop()
        watched = self._watcher.directories() + self._watcher.files()
        if watched:
            self._watcher.removePaths(watched)

    def _sync_paths(self) -> None:
        """Track profile folders appearing and disappearing."""
        wanted = {str(self._root)}
        if self._root.is_dir():
            wanted.update(str(d) for d in self._root.iterdir() if d.is_dir())
        current = set(self._watcher.directories())

        stale = current - wanted
        if stale:
            self._watcher.removePaths(sorted(stale))
        fresh = wanted - current
        if fresh:
            failed = self._watcher.addPaths(sorted(fresh))
            for path in failed:
                logger.debug(f"Could not watch {path}")

    def _on_changed(self, path: str) -> None:
        self._timer.start()

    def _on_settled(self) -> None:
        self._sync_paths()
        self.refresh_requested.emit()
