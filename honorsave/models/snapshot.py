"""Snapshot, restoration mark and derived save-state models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import uuid4

QUICKSAVE_LABEL = "[Quicksave]"
MIGRATED_LABEL = "Migrated Save"
UNNAMED_SAVE = "[Unnamed Save]"
UNKNOWN_SAVE = "[Unknown Save]"
CURRENT_SAVE = "Current Save"


def new_snapshot_id() -> str:
    return uuid4().hex


@dataclass
class Snapshot:
    """One stored backup or quicksave."""

    id: str
    storage_folder: str  # Folder name under the backup root, never renamed
    profile_id: str
    character_name: str = ""  # Denormalized from the profile name table
    user_label: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    is_quicksave: bool = False

    @property
    def display_label(self) -> str:
        if self.user_label:
            return self.user_label
        return QUICKSAVE_LABEL if self.is_quicksave else UNNAMED_SAVE


@dataclass
class RestorationMark:
    """Last snapshot restored into a profile."""

    profile_id: str
    snapshot_id: str
    restored_at: datetime


class SaveStateKind(StrEnum):
    """Whether the live save still equals a known snapshot."""

    CURRENT = "current"
    RESTORED = "restored"


@dataclass
class SaveState:
    """
    Display state of a profile's live save.

    ``snapshot`` is ``None`` for ``CURRENT`` and for a mark whose snapshot no
    longer resolves; ``from_mark`` separates a persisted restoration from a
    heuristic content match.
    """

    kind: SaveStateKind
    snapshot: Snapshot | None = None
    timestamp: datetime | None = None
    from_mark: bool = False

    @property
    def is_restored(self) -> bool:
        return self.kind == SaveStateKind.RESTORED

    @property
    def is_degraded(self) -> bool:
        return self.is_restored and self.snapshot is None

    @property
    def label(self) -> str:
        if self.kind == SaveStateKind.CURRENT:
            return CURRENT_SAVE
        if self.snapshot is None:
            return UNKNOWN_SAVE
        return self.snapshot.display_label
