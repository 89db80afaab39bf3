"""Tests for the snapshot ledger."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from honorsave.core.errors import LedgerError
from honorsave.core.ledger import (
    LEDGER_FILE,
    LEDGER_HEADER,
    LEGACY_NAMES_FILE,
    MIGRATED_SUFFIX,
    SnapshotStore,
    format_record,
    parse_record,
)
from honorsave.models.snapshot import MIGRATED_LABEL, QUICKSAVE_LABEL, Snapshot

from conftest import write_save


def _snapshot_dir(root: Path, folder: str, profile_id: str = "Tav-1234__HonourMode") -> Path:
    write_save(root / folder / profile_id / "QuickSave_1.lsv", b"payload")
    return root / folder


def _snapshot(folder: str, **kwargs) -> Snapshot:
    defaults = dict(
        id=f"id-{folder}",
        storage_folder=folder,
        profile_id="Tav-1234__HonourMode",
        character_name="Karlach",
        user_label="Camp",
        created_at=datetime(2024, 5, 1, 18, 30, 15),
    )
    defaults.update(kwargs)
    return Snapshot(**defaults)


class TestRecordFormat:
    def test_eight_fields(self) -> None:
        line = format_record(_snapshot("a"))
        assert line.split("|") == [
            "id-a",
            "a",
            "2024-05-01T18:30:15",
            "Karlach",
            "Tav-1234__HonourMode",
            "Camp",
            "2024-05-01 18:30:15",
            "0",
        ]

    def test_separator_and_newlines_escaped(self) -> None:
        snapshot = _snapshot("a", user_label="50% | done\nreally", is_quicksave=True)
        line = format_record(snapshot)
        assert "\n" not in line
        assert len(line.split("|")) == 8
        parsed = parse_record(line)
        assert parsed.user_label == "50% | done\nreally"
        assert parsed.is_quicksave

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "only|three|fields",
            "id|folder|not-a-date|c|p|l|d|0",
            "|folder|2024-05-01T18:30:15|c|p|l|d|0",
        ],
    )
    def test_malformed_lines(self, line: str) -> None:
        assert parse_record(line) is None

    def test_extra_fields_ignored(self) -> None:
        parsed = parse_record(format_record(_snapshot("a")) + "|future")
        assert parsed is not None
        assert parsed.storage_folder == "a"


class TestLoadSave:
    def test_round_trip(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        _snapshot_dir(backup_root, "b")
        store.save([_snapshot("a"), _snapshot("b", is_quicksave=True, user_label="")])
        loaded = store.load().snapshots
        assert [s.storage_folder for s in loaded] == ["a", "b"]
        assert loaded[1].is_quicksave
        assert loaded[0].created_at == datetime(2024, 5, 1, 18, 30, 15)

    def test_header_written(self, store: SnapshotStore, backup_root: Path) -> None:
        store.save([])
        assert (backup_root / LEDGER_FILE).read_text(encoding="utf-8").splitlines() == [LEDGER_HEADER]

    def test_missing_file_is_empty(self, store: SnapshotStore) -> None:
        assert store.load().snapshots == []

    def test_skips_malformed_and_duplicate_lines(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        _snapshot_dir(backup_root, "b")
        lines = [
            LEDGER_HEADER,
            format_record(_snapshot("a")),
            "garbage line",
            "",
            format_record(_snapshot("a", id="other-id")),
            format_record(_snapshot("b")),
        ]
        (backup_root / LEDGER_FILE).write_text("\n".join(lines) + "\n", encoding="utf-8")
        loaded = store.load().snapshots
        assert [s.id for s in loaded] == ["id-a", "id-b"]

    def test_drops_records_without_folder(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        store.save([_snapshot("a"), _snapshot("gone")])
        assert [s.storage_folder for s in store.load().snapshots] == ["a"]

    def test_save_failure_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = SnapshotStore(blocker)
        with pytest.raises((LedgerError, OSError)):
            store.save([])


class TestReconcile:
    def test_unknown_folder_gets_record(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "Tav-1234__HonourMode_2024-01-01_10-00-00")
        result = store.reconcile([], {"Tav-1234__HonourMode": "Karlach"})
        assert len(result) == 1
        assert result[0].user_label == MIGRATED_LABEL
        assert result[0].character_name == "Karlach"
        assert result[0].profile_id == "Tav-1234__HonourMode"
        assert not result[0].is_quicksave

    def test_quicksave_folder(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "Tav-1234__HonourMode_quicksave")
        result = store.reconcile([])
        assert result[0].is_quicksave
        assert result[0].user_label == QUICKSAVE_LABEL

    def test_folder_without_subdir_ignored(self, store: SnapshotStore, backup_root: Path) -> None:
        (backup_root / "empty").mkdir()
        write_save(backup_root / "flat" / "profile8.lsf", b"flag")
        assert store.reconcile([]) == []

    def test_prefers_mode_suffixed_subdir(self, store: SnapshotStore, backup_root: Path) -> None:
        folder = _snapshot_dir(backup_root, "mixed")
        (folder / "AAA-extras").mkdir()
        assert store.reconcile([])[0].profile_id == "Tav-1234__HonourMode"

    def test_idempotent(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        first = store.reconcile([])
        second = store.reconcile(first)
        assert [s.id for s in second] == [s.id for s in first]

    def test_known_folders_untouched(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        known = _snapshot("a")
        assert store.reconcile([known]) == [known]

    def test_legacy_names_merged_and_consumed(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "OldFolder")
        legacy = backup_root / LEGACY_NAMES_FILE
        legacy.write_text("oldfolder|Astarion|Before Boss\nbroken line\n", encoding="utf-8")

        result = store.reconcile([])
        assert result[0].character_name == "Astarion"
        assert result[0].user_label == "Before Boss"
        assert not legacy.exists()
        assert legacy.with_name(LEGACY_NAMES_FILE + MIGRATED_SUFFIX).exists()

    def test_migrate_persists_ledger(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        state = store.migrate()
        assert len(state.snapshots) == 1
        assert [s.id for s in SnapshotStore(backup_root).load().snapshots] == [state.snapshots[0].id]

    def test_migrate_twice_keeps_ids(self, store: SnapshotStore, backup_root: Path) -> None:
        _snapshot_dir(backup_root, "a")
        first = store.migrate()
        second = store.migrate()
        assert [s.id for s in second.snapshots] == [s.id for s in first.snapshots]


class TestNameTable:
    def test_round_trip(self, store: SnapshotStore) -> None:
        store.save_name_table({"Tav-1234__HonourMode": "Karlach", "Weird|Id__HonourMode": "Lae zel"})
        assert store.load_name_table() == {
            "Tav-1234__HonourMode": "Karlach",
            "Weird|Id__HonourMode": "Lae zel",
        }

    def test_empty_names_not_written(self, store: SnapshotStore) -> None:
        store.save_name_table({"a": ""})
        assert store.load_name_table() == {}

    def test_scanned_profiles(self, store: SnapshotStore) -> None:
        store.save_scanned_profiles({"b", "a"})
        assert store.load_scanned_profiles() == {"a", "b"}

    def test_load_includes_names(self, store: SnapshotStore) -> None:
        store.save_name_table({"p": "Gale"})
        assert store.load().name_table == {"p": "Gale"}
