"""Character-name detection from save payloads via the external ``divine`` tool.

The engine only depends on the ``(save_path) -> name | None`` shape; any
failure here means "leave the name unset".
"""

from __future__ import annotations

import subprocess
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path

from loguru import logger

_TIMEOUT_SECONDS = 30


def parse_leader_name(meta_lsx: Path) -> str | None:
    """Read ``LeaderName`` out of a converted ``meta.lsx`` document."""
    try:
        root = ET.parse(meta_lsx).getroot()
    except (ET.ParseError, OSError) as e:
        logger.debug(f"Could not parse {meta_lsx}: {e}")
        return None
    node = root.find(".//attribute[@id='LeaderName']")
    if node is None:
        return None
    value = (node.get("value") or "").strip()
    return value or None


class DivineNameExtractor:
    """Extracts the save package with divine, converts its metadata and parses it."""

    def __init__(self, divine_path: Path, game: str = "bg3") -> None:
        self._divine = divine_path
        self._game = game

    @property
    def available(self) -> bool:
        return self._divine.is_file()

    def __call__(self, save_path: Path) -> str | None:
        if not self.available:
            logger.debug(f"divine not found at {self._divine}")
            return None
        if not save_path.is_file():
            return None

        with tempfile.TemporaryDirectory(prefix="honorsave_meta_") as tmp:
            work = Path(tmp)
            if not self._run("extract-package", save_path, work):
                return None
            meta_lsf = work / "meta.lsf"
            meta_lsx = work / "meta.lsx"
            if not meta_lsf.is_file():
                logger.debug(f"meta.lsf missing after extracting {save_path.name}")
                return None
            if not self._run("convert-resource", meta_lsf, meta_lsx):
                return None
            return parse_leader_name(meta_lsx)

    def _run(self, action: str, source: Path, destination: Path) -> bool:
        cmd = [
            str(self._divine),
            "--action", action,
            "--game", self._game,
            "--source", str(source),
            "--destination", str(destination),
        ]
        try:
            proc = subprocess.run(  # noqa: S603
                cmd, capture_output=True, text=True, timeout=_TIMEOUT_SECONDS
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"divine {action} failed to run: {e}")
            return False
        if proc.returncode != 0:
            logger.debug(f"divine {action} exited with {proc.returncode}: {proc.stderr.strip()}")
            return False
        return True
