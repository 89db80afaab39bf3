"""Restoration tracker — per-profile "last restored snapshot" marks and save-state derivation."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from honorsave.core.errors import LedgerError
from honorsave.core.matcher import MatchEngine
from honorsave.models.profile import Profile
from honorsave.models.snapshot import RestorationMark, SaveState, SaveStateKind, Snapshot

TRACKING_FILE = "restore_tracking.txt"

# Absorbs timestamp jitter from the restore copy itself
RESTORE_GRACE = timedelta(minutes=1)


class RestorationTracker:
    """
    Two-state machine per profile: ``CURRENT`` or ``RESTORED`` from a snapshot.

    Marks are only ever superseded.  A mark whose snapshot has been deleted
    stays on disk and degrades the read path instead of raising.
    """

    def __init__(self, root: Path, matcher: MatchEngine) -> None:
        self._path = root / TRACKING_FILE
        self._matcher = matcher
        self._marks: dict[str, RestorationMark] = {}

    # ── Persistence ──

    def load(self) -> dict[str, RestorationMark]:
        """Reload marks from disk."""
        self._marks = {}
        if not self._path.exists():
            return dict(self._marks)
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Failed to read restore tracking: {e}")
            return dict(self._marks)

        for line in lines:
            parts = line.split("|")
            if len(parts) != 3 or not parts[0] or not parts[1]:
                continue
            try:
                restored_at = datetime.fromisoformat(parts[2])
            except ValueError:
                logger.debug(f"Skipping restore mark with bad timestamp: {line!r}")
                continue
            self._marks[parts[0]] = RestorationMark(
                profile_id=parts[0], snapshot_id=parts[1], restored_at=restored_at
            )
        return dict(self._marks)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8", newline="\n") as f:
                for mark in self._marks.values():
                    f.write(f"{mark.profile_id}|{mark.snapshot_id}|{mark.restored_at.isoformat()}\n")
            tmp.replace(self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise LedgerError(f"Failed to save restore tracking: {e}") from e

    # ── Transitions ──

    def mark_for(self, profile_id: str) -> RestorationMark | None:
        return self._marks.get(profile_id)

    def record(self, profile_id: str, snapshot_id: str, now: datetime | None = None) -> RestorationMark:
        """
        Overwrite the profile's mark after a completed restore.

        Raises :class:`LedgerError` when the mark cannot be written; the mark
        still holds in memory until the next :meth:`load`.
        """
        mark = RestorationMark(
            profile_id=profile_id,
            snapshot_id=snapshot_id,
            restored_at=now or datetime.now(),
        )
        self._marks[profile_id] = mark
        self._save()
        logger.debug(f"Recorded restore of {snapshot_id} into {profile_id}")
        return mark

    def describe_state(
        self,
        profile: Profile,
        mark: RestorationMark | None,
        snapshots: list[Snapshot],
    ) -> SaveState:
        """Derive whether the live save still equals a known snapshot."""
        if mark is None:
            match = self._matcher.find_matching_snapshot(profile, snapshots)
            if match is not None:
                return SaveState(SaveStateKind.RESTORED, snapshot=match, timestamp=profile.last_modified)
            return SaveState(SaveStateKind.CURRENT, timestamp=profile.last_modified)

        # Exactly at the grace boundary still counts as restored
        if profile.last_modified is not None and profile.last_modified > mark.restored_at + RESTORE_GRACE:
            return SaveState(SaveStateKind.CURRENT, timestamp=profile.last_modified)

        snapshot = next((s for s in snapshots if s.id == mark.snapshot_id), None)
        if snapshot is None:
            return SaveState(SaveStateKind.RESTORED, timestamp=mark.restored_at, from_mark=True)
        return SaveState(
            SaveStateKind.RESTORED,
            snapshot=snapshot,
            timestamp=profile.last_modified or mark.restored_at,
            from_mark=True,
        )
