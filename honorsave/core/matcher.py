"""Match engine — is the live save a copy of a known snapshot?"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from honorsave.core.scanner import find_most_recent_save
from honorsave.models.profile import Profile
from honorsave.models.snapshot import Snapshot

# Copies may land with slightly different mtimes depending on the filesystem
MTIME_TOLERANCE_SECONDS = 2.0


class MatchEngine:
    """
    Approximate content fingerprinting by payload mtime and byte length.

    This is a heuristic, not a hash: two saves of identical size written
    within the tolerance window are indistinguishable.
    """

    def __init__(
        self,
        backup_root: Path,
        mode_suffix: str = "__HonourMode",
        extension: str = ".lsv",
    ) -> None:
        self._root = backup_root
        self._suffix = mode_suffix
        self._extension = extension

    def snapshot_save_file(self, snapshot: Snapshot) -> Path | None:
        """Newest payload inside the snapshot's stored profile tree."""
        folder = self._root / snapshot.storage_folder
        if not folder.is_dir():
            return None
        profile_dir = folder / snapshot.profile_id
        if not profile_dir.is_dir():
            suffixed = [
                d for d in sorted(folder.iterdir())
                if d.is_dir() and d.name.lower().endswith(self._suffix.lower())
            ]
            if not suffixed:
                return None
            profile_dir = suffixed[0]
        return find_most_recent_save(profile_dir, self._extension)

    def find_matching_snapshot(self, profile: Profile, snapshots: list[Snapshot]) -> Snapshot | None:
        """First non-quicksave snapshot of the same character whose payload matches."""
        live = profile.most_recent_save
        if live is None or not live.is_file():
            return None
        live_stat = live.stat()
        character = profile.character_name.casefold()

        for snapshot in snapshots:
            if snapshot.is_quicksave or snapshot.character_name.casefold() != character:
                continue
            stored = self.snapshot_save_file(snapshot)
            if stored is None:
                continue
            stored_stat = stored.stat()
            if (
                abs(live_stat.st_mtime - stored_stat.st_mtime) <= MTIME_TOLERANCE_SECONDS
                and live_stat.st_size == stored_stat.st_size
            ):
                logger.debug(f"Live save of {profile.id} matches snapshot {snapshot.storage_folder}")
                return snapshot
        return None
