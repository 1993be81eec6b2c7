"""Unit tests for the TSV-backed position store."""

from __future__ import annotations

from pathlib import Path

import pytest

from autoderiver.errors import InvalidDescriptionError
from autoderiver.phonology.position import Position
from autoderiver.phonology.repository import PositionRepository, parse_dictionary_lines


def _write(path: Path, text: str) -> Path:
    """Write helper for fixture files in tmp directories."""

    path.write_text(text, encoding="utf-8")
    return path


def test_entries_are_indexed_by_headword_in_file_order(store: PositionRepository) -> None:
    """Entries for a headword should keep file order."""

    entries = store.by_headword("風")

    assert [entry.position.description for entry in entries] == ["幫三東平", "幫三東去"]
    assert [entry.fanqie for entry in entries] == ["方戎", "方鳳"]
    assert entries[0].gloss == "wind"
    assert store.by_headword("籟") == ()


def test_all_lists_each_position_once_in_first_appearance_order(store: PositionRepository) -> None:
    """Each position should be listed once in order of first appearance."""

    positions = list(store.all())

    assert len(positions) == 16
    assert len(set(positions)) == 16
    assert positions[0].description == "幫三東平"
    assert positions[-1].description == "見開一歌平"


def test_by_position_collects_homophones(store: PositionRepository) -> None:
    """Entries sharing a position should be found together."""

    entries = store.by_position(Position.from_description("定一東平"))

    assert [entry.headword for entry in entries] == ["同", "銅", "童"]


def test_store_helpers_delegate_to_position(store: PositionRepository) -> None:
    """Store helpers should parse, adapt and describe like Position does."""

    position = store.parse_description("幫開三東平")

    assert store.strict_adapt(position) == Position.from_description("幫三東平")
    assert store.equals(position, Position.from_description("幫開三東平"))
    assert store.describe(position) == "幫開三東平"
    with pytest.raises(InvalidDescriptionError):
        store.parse_description("幫三")


def test_parse_without_header_skips_comments_and_blank_lines() -> None:
    """Headerless files should skip comments and blank lines."""

    entries = parse_dictionary_lines(
        [
            "# comment\n",
            "\n",
            "東\t端一東平\t德紅\teast\n",
            "東\t端一東去\t\n",
        ]
    )

    assert [entry.position.description for entry in entries] == ["端一東平", "端一東去"]
    assert entries[1].fanqie is None
    assert entries[1].gloss == ""


def test_parse_reports_all_invalid_rows() -> None:
    """Every invalid row should be reported at once."""

    with pytest.raises(ValueError) as exc_info:
        parse_dictionary_lines(
            [
                "headword\tposition\tfanqie\tgloss\n",
                "東東\t端一東平\t德紅\t\n",
                "東\t端一\t德紅\t\n",
            ]
        )

    message = str(exc_info.value)
    assert "Dictionary validation failed with 2 errors" in message
    assert "Row 2: invalid headword '東東'" in message
    assert "Row 3:" in message


def test_parse_preview_truncates_long_error_lists() -> None:
    """Long error lists should be truncated in the message."""

    lines = [f"{index}\tbad\t\t\n" for index in range(30)]

    with pytest.raises(ValueError) as exc_info:
        parse_dictionary_lines(lines)

    assert "failed with 30 errors" in str(exc_info.value)
    assert "... and 5 more" in str(exc_info.value)


def test_missing_dictionary_file_raises(tmp_path: Path) -> None:
    """A missing dictionary file should raise FileNotFoundError."""

    repo = PositionRepository(tmp_path / "missing.tsv")

    with pytest.raises(FileNotFoundError):
        repo.by_headword("東")


def test_header_columns_may_be_reordered(tmp_path: Path) -> None:
    """A header row should allow columns in any order."""

    path = _write(
        tmp_path / "dictionary.tsv",
        "position\theadword\tgloss\tfanqie\n端一東平\t東\teast\t德紅\n",
    )

    (entry,) = PositionRepository(path).by_headword("東")

    assert entry.fanqie == "德紅"
    assert entry.gloss == "east"


def test_rows_are_normalized_and_impossible_positions_reported() -> None:
    """Stored positions should match what inline pins normalize to."""

    entries = parse_dictionary_lines(["風\t幫開三東平\t方戎\twind\n"])

    assert entries[0].position == Position.from_description("幫三東平")
    with pytest.raises(ValueError) as exc_info:
        parse_dictionary_lines(["風\t幫三東平\n", "歌\t見開一歌入\n", "行\t匣二庚平\n"])

    message = str(exc_info.value)
    assert "failed with 2 errors" in message
    assert "Row 2: position '見開一歌入' does not occur" in message
    assert "Row 3: position '匣二庚平' does not occur" in message
