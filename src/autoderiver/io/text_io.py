"""Plain-text rendering of export results and output helpers."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Sequence

from autoderiver.export.modes import OUTPUT_SEPARATOR
from autoderiver.models import (
    AnnotationGroup,
    AnnotationRecord,
    PresetLine,
    PresetParagraph,
    SmallRhymeRow,
    SyllableCount,
)

GROUP_SEPARATOR = " | "


def _format_outputs(outputs: Sequence[str]) -> str:
    return OUTPUT_SEPARATOR.join(outputs)


def _format_group(group: AnnotationGroup) -> str:
    return _format_outputs(group.outputs)


def render_record(record: AnnotationRecord) -> str:
    """Render one annotated character.

    A pinned record shows only its preselected group; otherwise every group
    is listed. Characters without readings are emitted unchanged.
    """

    if not record.groups:
        return record.character
    pinned = record.preselected_group
    if pinned is not None:
        return f"{record.character}({_format_group(pinned)})"
    return f"{record.character}({GROUP_SEPARATOR.join(_format_group(group) for group in record.groups)})"


def render_annotations(records: Sequence[AnnotationRecord]) -> str:
    return "".join(render_record(record) for record in records)


def _render_preset_line(line: PresetLine) -> str:
    parts: list[str] = []
    for segment in line.segments:
        if segment.is_annotated:
            parts.append(f"{segment.text}({_format_outputs(segment.outputs)})")
        else:
            parts.append(segment.text)
    return "".join(parts)


def render_preset(paragraphs: Sequence[PresetParagraph]) -> str:
    """Render paragraphs with blank lines between them, heading first."""

    blocks = []
    for paragraph in paragraphs:
        lines = [paragraph.heading, *paragraph.body]
        blocks.append("\n".join(_render_preset_line(line) for line in lines))
    return "\n\n".join(blocks)


def render_small_rhymes(rows: Sequence[SmallRhymeRow]) -> str:
    """Render one ``description outputs representatives`` line per row."""

    return "\n".join(
        f"{row.position.description} {_format_outputs(row.outputs)} {''.join(row.representatives)}"
        for row in rows
    )


def render_syllables(syllables: Sequence[str]) -> str:
    return ", ".join(syllables)


def render_syllable_counts(counts: Sequence[SyllableCount]) -> str:
    return ", ".join(f"{item.syllable} ({item.count})" for item in counts)


def write_text(text: str, output_path: Path | None = None) -> None:
    """Write rendered text to ``output_path``, or to stdout when it is ``None``.

    Args:
        text: Rendered result.
        output_path: Destination file path.
    """

    if output_path is None:
        sys.stdout.write(text)
        sys.stdout.write("\n")
        return
    with output_path.open("w", encoding="utf-8") as handle:
        handle.write(text)
        handle.write("\n")
