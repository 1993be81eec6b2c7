"""Unit tests for plain-text rendering of export results."""

from __future__ import annotations

from pathlib import Path

import pytest

from autoderiver.io.text_io import (
    render_annotations,
    render_preset,
    render_small_rhymes,
    render_syllable_counts,
    render_syllables,
    write_text,
)
from autoderiver.models import (
    AnnotationGroup,
    AnnotationRecord,
    DictionaryEntry,
    PresetLine,
    PresetParagraph,
    PresetSegment,
    SmallRhymeRow,
    SyllableCount,
)
from autoderiver.phonology.position import Position

LEVEL = Position.from_description("幫三東平")
DEPARTING = Position.from_description("幫三東去")


def _group(outputs: tuple[str, ...], position: Position) -> AnnotationGroup:
    return AnnotationGroup(outputs=outputs, entries=(DictionaryEntry("風", None, "", position),))


def test_render_annotations_shows_pinned_or_all_groups() -> None:
    """Pinned records should show one group and others every group."""

    groups = (_group(("pung", "fēng"), LEVEL), _group(("pungH", "fèng"), DEPARTING))
    records = [
        AnnotationRecord("清", 0),
        AnnotationRecord("風", 1, groups, preselected_group_index=1),
        AnnotationRecord("風", 2, groups),
    ]

    assert render_annotations(records) == "清風(pungH / fèng)風(pung / fēng | pungH / fèng)"


def test_render_preset_keeps_paragraph_layout() -> None:
    """Rendered preset text should keep headings and blank-line paragraphs."""

    paragraphs = [
        PresetParagraph(heading=PresetLine((PresetSegment("序"),))),
        PresetParagraph(
            heading=PresetLine((PresetSegment("風", LEVEL, ("pung",)), PresetSegment("起"))),
            body=(PresetLine((PresetSegment("東"),)),),
        ),
    ]

    assert render_preset(paragraphs) == "序\n\n風(pung)起\n東"


def test_render_small_rhymes_and_syllables() -> None:
    """Enumeration results should render on one line each."""

    rows = [
        SmallRhymeRow(
            position=Position.from_description("定一東平"),
            outputs=("dung", "tóng"),
            representatives=("同", "童"),
        )
    ]

    assert render_small_rhymes(rows) == "定一東平 dung / tóng 同童"
    assert render_syllables(["pung", "dung"]) == "pung, dung"
    assert render_syllable_counts([SyllableCount("pung", 3), SyllableCount("dung", 1)]) == (
        "pung (3), dung (1)"
    )


def test_write_text_to_file_and_stdout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Output should go to the given file or to stdout."""

    output = tmp_path / "out.txt"

    write_text("風(pung)", output)
    write_text("東(tung)")

    assert output.read_text(encoding="utf-8") == "風(pung)\n"
    assert capsys.readouterr().out == "東(tung)\n"
