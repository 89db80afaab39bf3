"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from honorsave.config import Config
    from honorsave.core.backup import BackupService
    from honorsave.core.ledger import SnapshotStore
    from honorsave.core.matcher import MatchEngine
    from honorsave.core.scanner import ProfileScanner
    from honorsave.core.tracker import RestorationTracker


@dataclass
class AppContext:
    """
    Central service container.

    Front ends receive this at construction time and own all selection
    state themselves; nothing in here tracks a "current" profile.
    """

    config: Config
    store: SnapshotStore
    scanner: ProfileScanner
    matcher: MatchEngine
    tracker: RestorationTracker
    backup_service: BackupService
