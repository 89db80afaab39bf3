"""Backup service — create, delete, restore and quicksave snapshots of save profiles."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Callable

from loguru import logger

from honorsave.core.errors import (
    ErrorKind,
    FlagMissingError,
    LedgerError,
    OperationResult,
    ReplaceError,
)
from honorsave.core.flag_file import backup_flag, restore_flag
from honorsave.core.ledger import QUICKSAVE_SUFFIX, SnapshotStore
from honorsave.core.locking import OperationGate
from honorsave.core.replacer import DirectoryReplacer
from honorsave.core.scanner import ProfileScanner
from honorsave.core.tracker import RestorationTracker
from honorsave.logger import hotkey_logger
from honorsave.models.profile import Profile
from honorsave.models.snapshot import SaveState, Snapshot, new_snapshot_id
from honorsave.utils import validate_name

_FOLDER_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"


class FlagIssue(StrEnum):
    """Why the flag file could not be put back during a restore."""

    MISSING = "missing"  # Snapshot predates flag backups
    FAILED = "failed"


ProceedCallback = Callable[[FlagIssue, str], bool]


class BackupService:
    """
    Orchestrates every write against the backup root and the live save root.

    Write operations hold the service's :class:`OperationGate` for their whole
    duration, so at most one of them is ever in flight and no rescan observes
    a half-finished delete/copy.  Quicksave and quick-restore return their
    result like every other operation but never raise.
    """

    def __init__(
        self,
        store: SnapshotStore,
        scanner: ProfileScanner,
        tracker: RestorationTracker,
        flag_file: Path,
        replacer: DirectoryReplacer | None = None,
        gate: OperationGate | None = None,
    ) -> None:
        self._store = store
        self._scanner = scanner
        self._tracker = tracker
        self._flag_file = flag_file
        self._replacer = replacer or DirectoryReplacer()
        self._gate = gate or OperationGate()
        self._snapshots: list[Snapshot] = []
        self._names: dict[str, str] = {}

    @property
    def gate(self) -> OperationGate:
        return self._gate

    @property
    def snapshots(self) -> list[Snapshot]:
        return list(self._snapshots)

    @property
    def name_table(self) -> dict[str, str]:
        return dict(self._names)

    def initialize(self) -> None:
        """Run the one-shot ledger migration and load restoration marks."""
        with self._gate.write():
            state = self._store.migrate()
            self._snapshots = state.snapshots
            self._names = state.name_table
            self._tracker.load()
        logger.info(f"Loaded {len(self._snapshots)} snapshot(s) from {self._store.root}")

    # ── Read side ──

    def refresh_profiles(self) -> list[Profile]:
        """Rescan the live save root, applying and auto-filling character names."""
        with self._gate.read():
            state = self._store.load()
            self._snapshots = state.snapshots
            names = state.name_table
            profiles = self._scanner.scan(names)
            scanned = self._store.load_scanned_profiles()
            changed = self._scanner.detect_names(profiles, names, scanned)
            self._tracker.load()
        self._names = names

        if changed:
            with self._gate.write():
                self._store.save_name_table(names)
                self._store.save_scanned_profiles(scanned)
        return profiles

    def find_profile(self, profile_id: str) -> Profile | None:
        folder = self._scanner.save_root / profile_id
        with self._gate.read():
            return self._scanner.load_profile(folder, self._names)

    def snapshots_for(self, character_name: str, include_quicksaves: bool = False) -> list[Snapshot]:
        """Snapshots of one character, newest first."""
        key = character_name.casefold()
        matching = [
            s
            for s in self._snapshots
            if s.character_name.casefold() == key and (include_quicksaves or not s.is_quicksave)
        ]
        return sorted(matching, key=lambda s: s.created_at, reverse=True)

    def quicksave_for(self, profile: Profile) -> Snapshot | None:
        return self._quicksave_of(profile.id, self._snapshots)

    def describe_state(self, profile: Profile) -> SaveState:
        with self._gate.read():
            mark = self._tracker.mark_for(profile.id)
            return self._tracker.describe_state(profile, mark, self._snapshots)

    # ── User operations ──

    def create_backup(self, profile: Profile, label: str, overwrite: bool = False) -> OperationResult:
        """Snapshot *profile* under *label*; an existing label needs ``overwrite``."""
        result = OperationResult()
        clean = validate_name(label)
        if clean is None:
            return result.fail(ErrorKind.INVALID, "Save names must be 1-20 letters, numbers or spaces")
        if not profile.character_name:
            return result.fail(ErrorKind.INVALID, "Name the character before creating a backup")
        if not profile.path.is_dir():
            return result.fail(ErrorKind.NOT_FOUND, f"Save folder not found: {profile.path}")

        with self._gate.write():
            snapshots = self._reload()
            existing = self._find_labelled(snapshots, profile.character_name, clean)
            if existing is not None:
                if not overwrite:
                    result.snapshot = existing
                    return result.fail(
                        ErrorKind.DUPLICATE,
                        f"A backup named '{clean}' already exists for {profile.character_name}",
                    )
                try:
                    self._replacer.delete(self._store.folder_path(existing))
                except ReplaceError as e:
                    return result.fail(ErrorKind.IO, f"Error deleting old backup: {e}")
                snapshots.remove(existing)
                logger.info(f"Overwriting backup '{clean}' for {profile.character_name}")

            now = datetime.now()
            root = self._store.ensure_root()
            folder_name = self._allocate_folder(root, profile.id, now, snapshots)
            dest = root / folder_name
            try:
                dest.mkdir(parents=True)
                self._replacer.copy_tree(profile.path, dest / profile.id)
            except OSError as e:
                self._discard(dest)
                if existing is not None:
                    self._persist_quietly(snapshots)
                return result.fail(ErrorKind.IO, f"Error creating backup: {e}")

            self._backup_flag(dest, result)

            snapshot = Snapshot(
                id=new_snapshot_id(),
                storage_folder=folder_name,
                profile_id=profile.id,
                character_name=profile.character_name,
                user_label=clean,
                created_at=now,
            )
            snapshots.append(snapshot)
            try:
                self._persist(snapshots)
            except LedgerError as e:
                return result.fail(ErrorKind.IO, str(e))

        result.snapshot = snapshot
        logger.info(f"Backup '{clean}' created for '{profile.character_name}' in {folder_name}")
        return result

    def delete_snapshot(self, snapshot_id: str) -> OperationResult:
        """Remove a snapshot's folder and its ledger record.  Not reversible."""
        result = OperationResult()
        with self._gate.write():
            snapshots = self._reload()
            snapshot = self._by_id(snapshots, snapshot_id)
            if snapshot is None:
                return result.fail(ErrorKind.NOT_FOUND, "Backup not found")
            try:
                self._replacer.delete(self._store.folder_path(snapshot))
            except ReplaceError as e:
                return result.fail(ErrorKind.IO, f"Error deleting backup: {e}")
            snapshots.remove(snapshot)
            try:
                self._persist(snapshots)
            except LedgerError as e:
                return result.fail(ErrorKind.IO, str(e))

        result.snapshot = snapshot
        logger.info(f"Deleted backup '{snapshot.display_label}' ({snapshot.storage_folder})")
        return result

    def restore(
        self,
        profile: Profile,
        snapshot_id: str,
        confirmed: bool,
        proceed_without_flag: ProceedCallback | None = None,
    ) -> OperationResult:
        """
        Replace the live profile folder with a snapshot.

        *confirmed* is the user's consent to delete the live save.  When the
        flag file cannot be put back, *proceed_without_flag* decides whether
        the restore still counts; without a callback it does not.  A
        permission failure on the flag file always aborts.  Aborting after
        the copy leaves the copied files in place but records no mark.
        """
        result = OperationResult()
        if not confirmed:
            return result.fail(ErrorKind.NOT_CONFIRMED, "Restore cancelled")

        with self._gate.write():
            snapshots = self._reload()
            snapshot = self._by_id(snapshots, snapshot_id)
            if snapshot is None:
                return result.fail(ErrorKind.NOT_FOUND, "Backup not found")
            if snapshot.profile_id != profile.id:
                return result.fail(
                    ErrorKind.INVALID,
                    f"Backup belongs to profile {snapshot.profile_id}, not {profile.id}",
                )
            result.snapshot = snapshot
            folder = self._store.folder_path(snapshot)
            source = folder / snapshot.profile_id
            if not source.is_dir():
                return result.fail(ErrorKind.NOT_FOUND, "Backup folder is empty")

            try:
                self._replacer.replace(source, profile.path)
            except ReplaceError as e:
                return result.fail(ErrorKind.IO, f"Error restoring backup: {e}")

            issue: FlagIssue | None = None
            detail = ""
            try:
                restore_flag(folder, self._flag_file)
            except PermissionError as e:
                logger.error(f"Permission denied restoring {self._flag_file.name}: {e}")
                return result.fail(
                    ErrorKind.FLAG_PERMISSION,
                    f"Permission denied when restoring {self._flag_file.name}; "
                    "try running as administrator",
                )
            except FlagMissingError as e:
                issue, detail = FlagIssue.MISSING, str(e)
            except OSError as e:
                issue, detail = FlagIssue.FAILED, str(e)

            if issue is not None:
                if proceed_without_flag is None or not proceed_without_flag(issue, detail):
                    logger.warning(f"Restore of {snapshot.storage_folder} abandoned without flag file")
                    return result.fail(
                        ErrorKind.FLAG_DECLINED,
                        f"Restore cancelled - Honor Mode flag could not be restored ({detail})",
                    )
                result.warnings.append(f"Restored without Honor Mode flag - {detail}")

            self._record_mark(profile, snapshot, result)

        logger.info(f"Restored '{snapshot.display_label}' into {profile.id}")
        return result

    def rename_character(self, profile: Profile, name: str) -> OperationResult:
        """Rename a profile's character and re-sync every snapshot taken from it."""
        result = OperationResult()
        clean = validate_name(name)
        if clean is None:
            return result.fail(ErrorKind.INVALID, "Character names must be 1-20 letters, numbers or spaces")

        with self._gate.write():
            snapshots = self._reload()
            names = self._store.load_name_table()
            names[profile.id] = clean
            self._store.save_name_table(names)
            self._names = names
            for snapshot in snapshots:
                if snapshot.profile_id == profile.id:
                    snapshot.character_name = clean
            try:
                self._persist(snapshots)
            except LedgerError as e:
                return result.fail(ErrorKind.IO, str(e))

        profile.character_name = clean
        logger.info(f"Renamed character of {profile.id} to '{clean}'")
        return result

    def rename_snapshot(self, snapshot_id: str, label: str) -> OperationResult:
        result = OperationResult()
        clean = validate_name(label)
        if clean is None:
            return result.fail(ErrorKind.INVALID, "Save names must be 1-20 letters, numbers or spaces")

        with self._gate.write():
            snapshots = self._reload()
            snapshot = self._by_id(snapshots, snapshot_id)
            if snapshot is None:
                return result.fail(ErrorKind.NOT_FOUND, "Backup not found")
            clash = self._find_labelled(snapshots, snapshot.character_name, clean)
            if clash is not None and clash.id != snapshot.id:
                return result.fail(ErrorKind.DUPLICATE, f"A backup named '{clean}' already exists")
            snapshot.user_label = clean
            try:
                self._persist(snapshots)
            except LedgerError as e:
                return result.fail(ErrorKind.IO, str(e))

        result.snapshot = snapshot
        return result

    # ── Hotkey operations ──

    def quick_save(self, profile: Profile) -> OperationResult:
        """Overwrite the profile's single quicksave.  Never raises."""
        try:
            return self._quick_save(profile)
        except Exception as e:
            hotkey_logger.warning(f"Quicksave failed for {profile.id}: {e}")
            return OperationResult().fail(ErrorKind.IO, str(e))

    def quick_restore(self, profile: Profile) -> OperationResult:
        """Put the profile's quicksave back into the live folder.  Never raises."""
        try:
            return self._quick_restore(profile)
        except Exception as e:
            hotkey_logger.warning(f"Quick-restore failed for {profile.id}: {e}")
            return OperationResult().fail(ErrorKind.IO, str(e))

    def _quick_save(self, profile: Profile) -> OperationResult:
        result = OperationResult()
        if not profile.path.is_dir():
            return result.fail(ErrorKind.NOT_FOUND, f"Save folder not found: {profile.path}")

        with self._gate.write():
            snapshots = self._reload()
            previous = [s for s in snapshots if s.is_quicksave and s.profile_id == profile.id]
            root = self._store.ensure_root()
            folder_name = f"{profile.id}{QUICKSAVE_SUFFIX}"
            dest = root / folder_name

            self._replacer.delete(dest)
            for stray in previous:
                if stray.storage_folder != folder_name:
                    self._replacer.delete(self._store.folder_path(stray))

            dest.mkdir(parents=True)
            self._replacer.copy_tree(profile.path, dest / profile.id)
            self._backup_flag(dest, result)

            snapshot = Snapshot(
                id=previous[0].id if previous else new_snapshot_id(),
                storage_folder=folder_name,
                profile_id=profile.id,
                character_name=profile.character_name,
                created_at=datetime.now(),
                is_quicksave=True,
            )
            if previous:
                index = snapshots.index(previous[0])
                snapshots[index] = snapshot
                for stray in previous[1:]:
                    snapshots.remove(stray)
            else:
                snapshots.append(snapshot)
            self._persist(snapshots)

        result.snapshot = snapshot
        hotkey_logger.info(f"Quicksave written for {profile.display_name}")
        return result

    def _quick_restore(self, profile: Profile) -> OperationResult:
        result = OperationResult()
        with self._gate.write():
            snapshots = self._reload()
            snapshot = self._quicksave_of(profile.id, snapshots)
            if snapshot is None:
                return result.fail(ErrorKind.NOT_FOUND, "No quicksave for this profile")
            folder = self._store.folder_path(snapshot)
            source = folder / snapshot.profile_id
            if not source.is_dir():
                return result.fail(ErrorKind.NOT_FOUND, "Quicksave folder is missing")

            self._replacer.replace(source, profile.path)
            try:
                restore_flag(folder, self._flag_file)
            except (FlagMissingError, OSError) as e:
                result.warnings.append(f"Flag file not restored: {e}")
            self._record_mark(profile, snapshot, result)

        result.snapshot = snapshot
        hotkey_logger.info(f"Quick-restored {profile.display_name}")
        return result

    # ── Helpers ──

    def _reload(self) -> list[Snapshot]:
        state = self._store.load()
        self._snapshots = state.snapshots
        self._names = state.name_table
        return list(self._snapshots)

    def _persist(self, snapshots: list[Snapshot]) -> None:
        self._store.save(snapshots)
        self._snapshots = list(snapshots)

    def _persist_quietly(self, snapshots: list[Snapshot]) -> None:
        try:
            self._persist(snapshots)
        except LedgerError as e:
            logger.error(str(e))

    def _discard(self, folder: Path) -> None:
        try:
            self._replacer.delete(folder)
        except ReplaceError as e:
            logger.error(f"Could not remove partial backup {folder.name}: {e}")

    def _record_mark(self, profile: Profile, snapshot: Snapshot, result: OperationResult) -> None:
        try:
            self._tracker.record(profile.id, snapshot.id)
        except LedgerError as e:
            logger.error(str(e))
            result.warnings.append(f"Restore completed but was not recorded - {e}")

    def _backup_flag(self, dest: Path, result: OperationResult) -> None:
        try:
            if not backup_flag(self._flag_file, dest):
                result.warnings.append(
                    f"{self._flag_file.name} not found at {self._flag_file}; "
                    "Honor Mode status may not be preserved"
                )
        except OSError as e:
            result.warnings.append(f"Backup created without Honor Mode flag - {e}")
        for warning in result.warnings:
            logger.warning(warning)

    @staticmethod
    def _by_id(snapshots: list[Snapshot], snapshot_id: str) -> Snapshot | None:
        return next((s for s in snapshots if s.id == snapshot_id), None)

    @staticmethod
    def _quicksave_of(profile_id: str, snapshots: list[Snapshot]) -> Snapshot | None:
        return next((s for s in snapshots if s.is_quicksave and s.profile_id == profile_id), None)

    @staticmethod
    def _find_labelled(snapshots: list[Snapshot], character_name: str, label: str) -> Snapshot | None:
        character, wanted = character_name.casefold(), label.casefold()
        return next(
            (
                s
                for s in snapshots
                if not s.is_quicksave
                and s.character_name.casefold() == character
                and s.user_label.casefold() == wanted
            ),
            None,
        )

    @staticmethod
    def _allocate_folder(root: Path, profile_id: str, now: datetime, snapshots: list[Snapshot]) -> str:
        base = f"{profile_id}_{now.strftime(_FOLDER_TIME_FORMAT)}"
        taken = {s.storage_folder.lower() for s in snapshots}
        name, counter = base, 2
        while name.lower() in taken or (root / name).exists():
            name = f"{base}_{counter}"
            counter += 1
        return name
