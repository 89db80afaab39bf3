"""Default locations for the game's save data and the manager's own data."""

from __future__ import annotations

import os
import platform
from pathlib import Path

APP_DIR_NAME = "HonorSaveManager"

_LARIAN_PROFILES = Path("Larian Studios") / "Baldur's Gate 3" / "PlayerProfiles" / "Public"


def local_app_data() -> Path:
    """Per-user local application data directory for the current system."""
    if platform.system() == "Windows":
        return Path(os.environ.get("LOCALAPPDATA", str(Path.home() / "AppData" / "Local")))
    return Path(os.environ.get("XDG_DATA_HOME", str(Path.home() / ".local" / "share")))


def default_data_dir() -> Path:
    return local_app_data() / APP_DIR_NAME


def default_save_root() -> Path:
    """Directory holding one sub-folder per save profile."""
    return local_app_data() / _LARIAN_PROFILES / "Savegames" / "Story"


def default_backup_root() -> Path:
    return default_data_dir() / "Backups"


def default_flag_file() -> Path:
    """Profile-level file that carries the Honour Mode flag."""
    return local_app_data() / _LARIAN_PROFILES / "profile8.lsf"
