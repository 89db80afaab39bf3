"""Snapshot ledger — line-oriented record file, name table and legacy migration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote

from loguru import logger

from honorsave.core.errors import LedgerError
from honorsave.models.snapshot import MIGRATED_LABEL, QUICKSAVE_LABEL, Snapshot, new_snapshot_id

LEDGER_FILE = "backup_data.txt"
LEDGER_HEADER = "#honorsave-ledger v2"
NAME_TABLE_FILE = "profile_names.txt"
SCANNED_PROFILES_FILE = "scanned_profiles.txt"
LEGACY_NAMES_FILE = "backup_names.txt"
MIGRATED_SUFFIX = ".migrated"
QUICKSAVE_SUFFIX = "_quicksave"

_FIELD_COUNT = 8
_DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def _escape(value: str) -> str:
    return value.replace("%", "%25").replace("|", "%7C").replace("\r", "%0D").replace("\n", "%0A")


def _unescape(value: str) -> str:
    return unquote(value)


def format_record(snapshot: Snapshot) -> str:
    """Serialize one snapshot as an 8-field ledger line."""
    return "|".join(
        [
            snapshot.id,
            _escape(snapshot.storage_folder),
            snapshot.created_at.isoformat(),
            _escape(snapshot.character_name),
            _escape(snapshot.profile_id),
            _escape(snapshot.user_label),
            snapshot.created_at.strftime(_DISPLAY_FORMAT),
            "1" if snapshot.is_quicksave else "0",
        ]
    )


def parse_record(line: str) -> Snapshot | None:
    """Parse a ledger line; ``None`` for anything short or malformed."""
    parts = line.rstrip("\r\n").split("|")
    if len(parts) < _FIELD_COUNT:
        return None
    snapshot_id, folder, created, character, profile_id, label, _display, quick = parts[:_FIELD_COUNT]
    if not snapshot_id or not folder:
        return None
    try:
        created_at = datetime.fromisoformat(created)
    except ValueError:
        return None
    return Snapshot(
        id=snapshot_id,
        storage_folder=_unescape(folder),
        profile_id=_unescape(profile_id),
        character_name=_unescape(character),
        user_label=_unescape(label),
        created_at=created_at,
        is_quicksave=quick.strip().lower() in ("1", "true"),
    )


def folder_creation_time(path: Path) -> datetime:
    st = path.stat()
    return datetime.fromtimestamp(getattr(st, "st_birthtime", None) or st.st_ctime)


@dataclass
class LedgerState:
    """Everything the ledger knows: snapshot records plus the profile name table."""

    snapshots: list[Snapshot] = field(default_factory=list)
    name_table: dict[str, str] = field(default_factory=dict)


class SnapshotStore:
    """
    Persisted collection of snapshot records under the backup root.

    ``save`` rewrites the whole file, so callers must hold the engine's
    write gate.
    """

    def __init__(self, root: Path, mode_suffix: str = "__HonourMode") -> None:
        self._root = root
        self._mode_suffix = mode_suffix

    @property
    def root(self) -> Path:
        return self._root

    @property
    def ledger_path(self) -> Path:
        return self._root / LEDGER_FILE

    def ensure_root(self) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def folder_path(self, snapshot: Snapshot) -> Path:
        return self._root / snapshot.storage_folder

    # ── Snapshot records ──

    def load(self) -> LedgerState:
        """Load all records whose storage folder still exists, plus the name table."""
        return LedgerState(snapshots=self._load_snapshots(), name_table=self.load_name_table())

    def _load_snapshots(self) -> list[Snapshot]:
        path = self.ledger_path
        if not path.exists():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error(f"Failed to read ledger {path}: {e}")
            return []

        snapshots: list[Snapshot] = []
        seen_ids: set[str] = set()
        seen_folders: set[str] = set()
        for number, line in enumerate(lines, start=1):
            if not line.strip() or line.startswith("#"):
                continue
            snapshot = parse_record(line)
            if snapshot is None:
                logger.warning(f"Skipping malformed ledger line {number}")
                continue
            if snapshot.id in seen_ids or snapshot.storage_folder.lower() in seen_folders:
                logger.warning(f"Skipping duplicate ledger record on line {number}: {snapshot.storage_folder}")
                continue
            if not (self._root / snapshot.storage_folder).is_dir():
                logger.debug(f"Dropping record for missing folder {snapshot.storage_folder}")
                continue
            seen_ids.add(snapshot.id)
            seen_folders.add(snapshot.storage_folder.lower())
            snapshots.append(snapshot)
        return snapshots

    def save(self, snapshots: list[Snapshot]) -> None:
        """Rewrite the ledger file with *snapshots*."""
        self.ensure_root()
        path = self.ledger_path
        tmp = path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8", newline="\n") as f:
                f.write(LEDGER_HEADER + "\n")
                for snapshot in snapshots:
                    f.write(format_record(snapshot) + "\n")
            tmp.replace(path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise LedgerError(f"Failed to save ledger: {e}") from e
        logger.debug(f"Saved {len(snapshots)} ledger record(s)")

    # ── Reconciliation / migration ──

    def reconcile(
        self,
        snapshots: list[Snapshot],
        name_table: dict[str, str] | None = None,
        root: Path | None = None,
    ) -> list[Snapshot]:
        """
        Absorb backup folders the ledger does not know about.

        Each unknown folder gets a fresh record.  Records from the legacy
        folder-keyed ledger are merged onto those by folder name and the
        legacy file is renamed so it is only consumed once.
        """
        root = root or self._root
        name_table = name_table or {}
        result = list(snapshots)
        if not root.is_dir():
            return result

        known = {s.storage_folder.lower() for s in result}
        synthesized: list[Snapshot] = []
        for folder in sorted(root.iterdir()):
            if not folder.is_dir() or folder.name.lower() in known:
                continue
            profile_dir = self._find_profile_dir(folder)
            if profile_dir is None:
                logger.debug(f"Ignoring backup folder without a profile tree: {folder.name}")
                continue
            is_quicksave = folder.name.lower().endswith(QUICKSAVE_SUFFIX)
            snapshot = Snapshot(
                id=new_snapshot_id(),
                storage_folder=folder.name,
                profile_id=profile_dir.name,
                character_name=name_table.get(profile_dir.name, ""),
                user_label=QUICKSAVE_LABEL if is_quicksave else MIGRATED_LABEL,
                created_at=folder_creation_time(folder),
                is_quicksave=is_quicksave,
            )
            synthesized.append(snapshot)
            known.add(folder.name.lower())

        legacy = self._consume_legacy_names(root)
        for snapshot in synthesized:
            entry = legacy.get(snapshot.storage_folder.lower())
            if entry:
                snapshot.character_name, snapshot.user_label = entry

        if synthesized:
            logger.info(f"Reconciled {len(synthesized)} untracked backup folder(s)")
        result.extend(synthesized)
        return result

    def migrate(self) -> LedgerState:
        """One-shot startup migration: load, reconcile, persist when changed."""
        self.ensure_root()
        state = self.load()
        before = len(state.snapshots)
        state.snapshots = self.reconcile(state.snapshots, state.name_table)
        if len(state.snapshots) != before or not self.ledger_path.exists():
            self.save(state.snapshots)
        return state

    def _find_profile_dir(self, folder: Path) -> Path | None:
        subdirs = sorted(d for d in folder.iterdir() if d.is_dir())
        if not subdirs:
            return None
        for d in subdirs:
            if d.name.lower().endswith(self._mode_suffix.lower()):
                return d
        return subdirs[0]

    def _consume_legacy_names(self, root: Path) -> dict[str, tuple[str, str]]:
        path = root / LEGACY_NAMES_FILE
        if not path.exists():
            return {}
        entries: dict[str, tuple[str, str]] = {}
        try:
            for line in path.read_text(encoding="utf-8").splitlines():
                parts = line.split("|")
                if len(parts) == 3 and parts[0]:
                    entries[parts[0].lower()] = (parts[1], parts[2])
            path.replace(path.with_name(path.name + MIGRATED_SUFFIX))
            logger.info(f"Migrated {len(entries)} legacy backup name(s)")
        except OSError as e:
            logger.warning(f"Failed to migrate legacy backup names: {e}")
        return entries

    # ── Name table ──

    def load_name_table(self) -> dict[str, str]:
        """Profile folder name → character name."""
        path = self._root / NAME_TABLE_FILE
        table: dict[str, str] = {}
        if not path.exists():
            return table
        try:
            for line in path.read_text(encoding="utf-8").splitlines():
                parts = line.split("|")
                if len(parts) == 2 and parts[0] and parts[1]:
                    table[_unescape(parts[0])] = _unescape(parts[1])
        except OSError as e:
            logger.warning(f"Failed to read profile names: {e}")
        return table

    def save_name_table(self, table: dict[str, str]) -> None:
        self.ensure_root()
        path = self._root / NAME_TABLE_FILE
        try:
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                for profile_id, name in table.items():
                    if name:
                        f.write(f"{_escape(profile_id)}|{_escape(name)}\n")
        except OSError as e:
            logger.error(f"Failed to save profile names: {e}")

    def load_scanned_profiles(self) -> set[str]:
        """Profiles already offered to character-name auto-detection."""
        path = self._root / SCANNED_PROFILES_FILE
        if not path.exists():
            return set()
        try:
            return {line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()}
        except OSError as e:
            logger.warning(f"Failed to read scanned profiles: {e}")
            return set()

    def save_scanned_profiles(self, scanned: set[str]) -> None:
        self.ensure_root()
        try:
            (self._root / SCANNED_PROFILES_FILE).write_text(
                "".join(f"{name}\n" for name in sorted(scanned)), encoding="utf-8"
            )
        except OSError as e:
            logger.error(f"Failed to save scanned profiles: {e}")
