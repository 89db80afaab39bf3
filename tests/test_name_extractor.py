"""Tests for character-name extraction."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from honorsave.core.name_extractor import DivineNameExtractor, parse_leader_name

META_LSX = """<?xml version="1.0" encoding="utf-8"?>
<save>
  <region id="MetaData">
    <node id="MetaData">
      <children>
        <node id="MetaData">
          <attribute id="LeaderName" type="LSString" value="Lae'zel" />
          <attribute id="SaveTime" type="int64" value="1700000000" />
        </node>
      </children>
    </node>
  </region>
</save>
"""


class TestParseLeaderName:
    def test_reads_leader_name(self, tmp_path: Path) -> None:
        meta = tmp_path / "meta.lsx"
        meta.write_text(META_LSX, encoding="utf-8")
        assert parse_leader_name(meta) == "Lae'zel"

    def test_missing_attribute(self, tmp_path: Path) -> None:
        meta = tmp_path / "meta.lsx"
        meta.write_text("<save><region id='MetaData'/></save>", encoding="utf-8")
        assert parse_leader_name(meta) is None

    def test_blank_value(self, tmp_path: Path) -> None:
        meta = tmp_path / "meta.lsx"
        meta.write_text("<save><attribute id='LeaderName' value='  '/></save>", encoding="utf-8")
        assert parse_leader_name(meta) is None

    def test_invalid_xml(self, tmp_path: Path) -> None:
        meta = tmp_path / "meta.lsx"
        meta.write_text("<save>", encoding="utf-8")
        assert parse_leader_name(meta) is None


class TestDivineNameExtractor:
    def test_unavailable_without_tool(self, tmp_path: Path) -> None:
        extractor = DivineNameExtractor(tmp_path / "divine.exe")
        assert not extractor.available
        assert extractor(tmp_path / "save.lsv") is None

    def test_runs_extract_then_convert(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        divine = tmp_path / "divine.exe"
        divine.write_bytes(b"")
        save = tmp_path / "QuickSave_1.lsv"
        save.write_bytes(b"package")
        actions: list[str] = []

        def fake_run(cmd, **kwargs):
            action = cmd[cmd.index("--action") + 1]
            destination = Path(cmd[cmd.index("--destination") + 1])
            actions.append(action)
            if action == "extract-package":
                (destination / "meta.lsf").write_bytes(b"binary")
            else:
                destination.write_text(META_LSX, encoding="utf-8")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        monkeypatch.setattr("honorsave.core.name_extractor.subprocess.run", fake_run)
        assert DivineNameExtractor(divine)(save) == "Lae'zel"
        assert actions == ["extract-package", "convert-resource"]

    def test_tool_failure_returns_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        divine = tmp_path / "divine.exe"
        divine.write_bytes(b"")
        save = tmp_path / "QuickSave_1.lsv"
        save.write_bytes(b"package")

        def failing_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="bad package")

        monkeypatch.setattr("honorsave.core.name_extractor.subprocess.run", failing_run)
        assert DivineNameExtractor(divine)(save) is None

    def test_timeout_returns_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        divine = tmp_path / "divine.exe"
        divine.write_bytes(b"")
        save = tmp_path / "QuickSave_1.lsv"
        save.write_bytes(b"package")

        def slow_run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout", 30))

        monkeypatch.setattr("honorsave.core.name_extractor.subprocess.run", slow_run)
        assert DivineNameExtractor(divine)(save) is None
