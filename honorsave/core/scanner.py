"""Profile scanner — discover live save profiles and their newest save payload."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

from loguru import logger

from honorsave.models.profile import Profile

FALLBACK_CHARACTER_NAME = "Honor Mode Character"

NameExtractor = Callable[[Path], "str | None"]


def find_most_recent_save(directory: Path, extension: str = ".lsv") -> Path | None:
    """Newest top-level payload file (by mtime) in *directory*."""
    if not directory.is_dir():
        return None
    candidates = [
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == extension.lower()
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


class ProfileScanner:
    """
    Read-only view of the live save root.

    Profiles are re-derived on every call; the caller supplies the name
    table that carries character names across rescans.
    """

    def __init__(
        self,
        save_root: Path,
        mode_suffix: str = "__HonourMode",
        extension: str = ".lsv",
        name_extractor: NameExtractor | None = None,
    ) -> None:
        self._root = save_root
        self._suffix = mode_suffix
        self._extension = extension
        self._extractor = name_extractor

    @property
    def save_root(self) -> Path:
        return self._root

    @property
    def mode_suffix(self) -> str:
        return self._suffix

    @property
    def extension(self) -> str:
        return self._extension

    def is_profile_folder(self, name: str) -> bool:
        return name.lower().endswith(self._suffix.lower())

    def scan(self, name_table: dict[str, str] | None = None) -> list[Profile]:
        """Every mode-suffixed profile folder that holds at least one save."""
        name_table = name_table or {}
        if not self._root.is_dir():
            logger.warning(f"Save folder not found: {self._root}")
            return []

        profiles: list[Profile] = []
        for folder in sorted(self._root.iterdir()):
            if not folder.is_dir() or not self.is_profile_folder(folder.name):
                continue
            profile = self.load_profile(folder, name_table)
            if profile is not None:
                profiles.append(profile)

        logger.debug(f"Found {len(profiles)} profile(s) in {self._root}")
        return profiles

    def load_profile(self, folder: Path, name_table: dict[str, str] | None = None) -> Profile | None:
        """Build a :class:`Profile` for one folder; ``None`` if it has no save."""
        newest = find_most_recent_save(folder, self._extension)
        if newest is None:
            return None
        return Profile(
            id=folder.name,
            path=folder,
            most_recent_save=newest,
            last_modified=datetime.fromtimestamp(newest.stat().st_mtime),
            character_name=(name_table or {}).get(folder.name, ""),
        )

    def detect_names(
        self,
        profiles: list[Profile],
        name_table: dict[str, str],
        scanned: set[str],
    ) -> bool:
        """
        Auto-name profiles that were never offered to the extractor.

        Updates *profiles*, *name_table* and *scanned* in place and returns
        whether anything changed.  Extractor failures never propagate.
        """
        changed = False
        for profile in profiles:
            if profile.id in scanned:
                continue
            name = self._extract(profile)
            if name:
                profile.character_name = name
            elif not profile.character_name:
                profile.character_name = FALLBACK_CHARACTER_NAME
            name_table[profile.id] = profile.character_name
            scanned.add(profile.id)
            changed = True
        return changed

    def _extract(self, profile: Profile) -> str | None:
        if self._extractor is None or profile.most_recent_save is None:
            return None
        try:
            name = self._extractor(profile.most_recent_save)
        except Exception as e:
            logger.warning(f"Character name detection failed for {profile.id}: {e}")
            return None
        if name:
            logger.info(f"Detected character '{name}' for {profile.id}")
        return name or None
