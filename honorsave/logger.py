"""Loguru-based logging setup, with a separate channel for hotkey-driven operations."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FILE = "honor-save-manager.log"
HOTKEY_LOG_FILE = "hotkeys.log"
HOTKEY_CHANNEL = "hotkey"

# Quicksave / quick-restore report here; they never surface to the user directly
hotkey_logger = logger.bind(channel=HOTKEY_CHANNEL)


def _is_hotkey(record: dict) -> bool:
    return record["extra"].get("channel") == HOTKEY_CHANNEL


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> None:
    """
    Configure console and rotating file output.

    Hotkey records reach the console only at WARNING and above so a running
    game session is not flooded.  With *log_dir* set they are also kept in
    their own ``hotkeys.log`` next to the main log.
    """
    logger.remove()
    console_level = "DEBUG" if verbose else "INFO"

    def console_filter(record: dict) -> bool:
        if _is_hotkey(record):
            return record["level"].no >= logger.level("WARNING").no
        return True

    # Console
    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}",
        colorize=True,
        filter=console_filter,
    )

    # File
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / LOG_FILE),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {name}:{line} | {message}",
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
        )
        logger.add(
            str(log_dir / HOTKEY_LOG_FILE),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {message}",
            rotation="1 MB",
            retention=3,
            encoding="utf-8",
            filter=_is_hotkey,
        )
