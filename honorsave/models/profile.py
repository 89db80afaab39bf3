"""Live save profile model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

UNNAMED_CHARACTER = "[Unnamed Character]"


@dataclass
class Profile:
    """
    One save slot discovered under the live save root.

    Re-derived on every scan; only ``id`` and ``character_name`` outlive a
    rescan (through the ledger's name table).
    """

    id: str  # Folder name on the save root
    path: Path
    most_recent_save: Path | None = None
    last_modified: datetime | None = None
    character_name: str = ""

    @property
    def display_name(self) -> str:
        return self.character_name or UNNAMED_CHARACTER

    @property
    def has_save(self) -> bool:
        return self.most_recent_save is not None and self.most_recent_save.is_file()
