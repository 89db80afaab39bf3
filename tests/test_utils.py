"""Tests for shared helpers."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from honorsave.utils import directory_size, format_datetime, format_size, validate_name


class TestValidateName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Before Boss", "Before Boss"),
            ("  Act 2  ", "Act 2"),
            ("a" * 20, "a" * 20),
            ("Tav99", "Tav99"),
        ],
    )
    def test_accepts(self, name: str, expected: str) -> None:
        assert validate_name(name) == expected

    @pytest.mark.parametrize("name", ["", "    ", "a" * 21, "Boss!", "Act_2", "Lae'zel", "a|b", "Café"])
    def test_rejects(self, name: str) -> None:
        assert validate_name(name) is None


class TestFormatting:
    def test_12_hour(self) -> None:
        assert format_datetime(datetime(2024, 5, 1, 18, 5, 9)) == "2024-05-01 06:05:09 PM"

    def test_24_hour(self) -> None:
        assert format_datetime(datetime(2024, 5, 1, 18, 5, 9), use_24_hour=True) == "2024-05-01 18:05:09"

    def test_format_size(self) -> None:
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(3 * 1024 * 1024) == "3.0 MB"

    def test_directory_size(self, tmp_path: Path) -> None:
        (tmp_path / "a").write_bytes(b"12345")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b").write_bytes(b"123")
        assert directory_size(tmp_path) == 8
        assert directory_size(tmp_path / "missing") == 0
