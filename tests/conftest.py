"""Shared fixtures: a fake live save root, backup root and Honour Mode flag file."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable

import pytest

from honorsave.core.backup import BackupService
from honorsave.core.ledger import SnapshotStore
from honorsave.core.matcher import MatchEngine
from honorsave.core.scanner import ProfileScanner
from honorsave.core.tracker import RestorationTracker
from honorsave.models.profile import Profile

PROFILE_ID = "Tav-1234__HonourMode"


def write_save(path: Path, content: bytes, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def save_root(tmp_path: Path) -> Path:
    root = tmp_path / "Savegames" / "Story"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def backup_root(tmp_path: Path) -> Path:
    root = tmp_path / "Backups"
    root.mkdir()
    return root


@pytest.fixture
def flag_file(tmp_path: Path) -> Path:
    return write_save(tmp_path / "PlayerProfiles" / "profile8.lsf", b"honour-flag-v1")


@pytest.fixture
def make_profile_dir(save_root: Path) -> Callable[..., Path]:
    """Create a profile folder holding one save payload and a screenshot."""

    def _make(
        name: str = PROFILE_ID,
        content: bytes = b"save-payload",
        mtime: float | None = None,
    ) -> Path:
        folder = save_root / name
        write_save(folder / "QuickSave_1.lsv", content, mtime if mtime is not None else time.time() - 3600)
        write_save(folder / "QuickSave_1.webp", b"thumbnail")
        return folder

    return _make


@pytest.fixture
def store(backup_root: Path) -> SnapshotStore:
    return SnapshotStore(backup_root)


@pytest.fixture
def scanner(save_root: Path) -> ProfileScanner:
    return ProfileScanner(save_root)


@pytest.fixture
def matcher(backup_root: Path) -> MatchEngine:
    return MatchEngine(backup_root)


@pytest.fixture
def tracker(backup_root: Path, matcher: MatchEngine) -> RestorationTracker:
    return RestorationTracker(backup_root, matcher)


@pytest.fixture
def service(
    store: SnapshotStore,
    scanner: ProfileScanner,
    tracker: RestorationTracker,
    flag_file: Path,
) -> BackupService:
    svc = BackupService(store, scanner, tracker, flag_file)
    svc.initialize()
    return svc


@pytest.fixture
def profile(service: BackupService, make_profile_dir: Callable[..., Path]) -> Profile:
    """A named live profile known to the service."""
    make_profile_dir()
    found = service.find_profile(PROFILE_ID)
    assert found is not None
    result = service.rename_character(found, "Karlach")
    assert result.success
    return found
