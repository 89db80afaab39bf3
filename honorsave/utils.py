"""Shared utility functions."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

MAX_NAME_LENGTH = 20

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 ]+$")


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def directory_size(path: Path) -> int:
    """Total size of all files beneath *path*."""
    if not path.is_dir():
        return 0
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())


def format_datetime(value: datetime, use_24_hour: bool = False) -> str:
    if use_24_hour:
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return value.strftime("%Y-%m-%d %I:%M:%S %p")


def validate_name(name: str) -> str | None:
    """
    Check a character name or save label.

    Returns the trimmed name, or ``None`` when it is empty, longer than
    twenty characters, or contains anything but letters, digits and spaces.
    """
    cleaned = name.strip()
    if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
        return None
    if not _NAME_PATTERN.match(cleaned):
        return None
    return cleaned
