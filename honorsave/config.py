"""Application configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from honorsave.paths import default_backup_root, default_data_dir, default_flag_file, default_save_root

_instance: "Config | None" = None


def get_config() -> Config:
    """Module-level factory — single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "save_root": "",
        "backup_root": "",
        "flag_file": "",
        "mode_suffix": "__HonourMode",
        "save_extension": ".lsv",
        "use_24_hour_time": False,
        "divine_path": "",
        "watcher_debounce_ms": 500,
        "hotkeys": {
            "quick_save": "f5",
            "quick_restore": "f6",
        },
    }

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = data_dir or default_data_dir()
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    def import_initial_config(self, path: Path) -> bool:
        """
        Consume an installer-written ``initial_config.txt``.

        Line 1 is the save root, line 2 the backup root.  The file is deleted
        once applied so it is only ever read once.
        """
        if not path.exists():
            return False
        try:
            lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
        except OSError as e:
            logger.warning(f"Could not read {path.name}: {e}")
            return False
        if len(lines) < 2 or not lines[0] or not lines[1]:
            logger.warning(f"Ignoring incomplete {path.name}")
            return False

        with self.batch_update():
            self.set("save_root", lines[0])
            self.set("backup_root", lines[1])
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove {path.name}: {e}")
        logger.info(f"Imported installer paths from {path.name}")
        return True

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def save_root(self) -> Path:
        raw = self._data.get("save_root", "")
        return Path(raw) if raw else default_save_root()

    @save_root.setter
    def save_root(self, value: Path | None) -> None:
        self.set("save_root", str(value) if value else "")

    @property
    def backup_root(self) -> Path:
        raw = self._data.get("backup_root", "")
        return Path(raw) if raw else default_backup_root()

    @backup_root.setter
    def backup_root(self, value: Path | None) -> None:
        self.set("backup_root", str(value) if value else "")

    @property
    def flag_file(self) -> Path:
        raw = self._data.get("flag_file", "")
        return Path(raw) if raw else default_flag_file()

    @flag_file.setter
    def flag_file(self, value: Path | None) -> None:
        self.set("flag_file", str(value) if value else "")

    @property
    def mode_suffix(self) -> str:
        return self._data.get("mode_suffix", "__HonourMode")

    @property
    def save_extension(self) -> str:
        ext = self._data.get("save_extension", ".lsv")
        return ext if ext.startswith(".") else f".{ext}"

    @property
    def use_24_hour_time(self) -> bool:
        return bool(self._data.get("use_24_hour_time", False))

    @use_24_hour_time.setter
    def use_24_hour_time(self, value: bool) -> None:
        self.set("use_24_hour_time", value)

    @property
    def divine_path(self) -> Path | None:
        raw = self._data.get("divine_path", "")
        return Path(raw) if raw else None

    @property
    def watcher_debounce_ms(self) -> int:
        return int(self._data.get("watcher_debounce_ms", 500))

    @property
    def quick_save_key(self) -> str:
        return self.get("hotkeys.quick_save", "f5")

    @property
    def quick_restore_key(self) -> str:
        return self.get("hotkeys.quick_restore", "f6")
