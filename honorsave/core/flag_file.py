"""Honour Mode flag sidecar — copied alongside every snapshot."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

from loguru import logger

from honorsave.core.errors import FlagMissingError


def clear_read_only(path: Path) -> None:
    mode = path.stat().st_mode
    if not mode & stat.S_IWRITE:
        os.chmod(path, stat.S_IMODE(mode) | stat.S_IWRITE)


def backup_flag(flag_path: Path, snapshot_dir: Path) -> bool:
    """
    Copy the flag file into the snapshot's top level.

    Returns ``False`` when the flag file does not exist.  Copy failures
    raise ``OSError``; whether that is fatal is the caller's decision.
    """
    if not flag_path.is_file():
        return False
    clear_read_only(flag_path)
    shutil.copy2(flag_path, snapshot_dir / flag_path.name)
    logger.debug(f"Backed up {flag_path.name} into {snapshot_dir.name}")
    return True


def restore_flag(snapshot_dir: Path, flag_path: Path) -> None:
    """
    Copy the snapshot's flag file back over the live one.

    Raises :class:`FlagMissingError` when the snapshot has no flag copy.
    ``PermissionError`` is left to propagate on its own so callers can tell
    a protected installation apart from other I/O failures.
    """
    stored = snapshot_dir / flag_path.name
    if not stored.is_file():
        raise FlagMissingError(f"{flag_path.name} not found in {snapshot_dir.name}")
    flag_path.parent.mkdir(parents=True, exist_ok=True)
    if flag_path.exists():
        clear_read_only(flag_path)
    shutil.copy2(stored, flag_path)
    logger.debug(f"Restored {flag_path.name} from {snapshot_dir.name}")
