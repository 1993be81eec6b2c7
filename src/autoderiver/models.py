"""Data models shared by the store, the engine and the export modes.

Every record is a frozen dataclass so results can be compared structurally
and reused across renderers without defensive copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from autoderiver.phonology.position import Position


@dataclass(frozen=True)
class DictionaryEntry:
    """One dictionary reading of a headword.

    Several entries may share a headword (homographs with distinct readings)
    or a position (different characters read alike). ``fanqie`` is ``None``
    for entries synthesized from inline disambiguation markup.
    """

    headword: str
    fanqie: str | None
    gloss: str
    position: Position


@dataclass(frozen=True)
class AnnotationGroup:
    """Entries of one character that every active scheme derives identically.

    ``outputs[i]`` is the transcription produced by the i-th scheme and is
    shared by every entry of the group.
    """

    outputs: tuple[str, ...]
    entries: tuple[DictionaryEntry, ...]

    def contains_position(self, position: Position) -> bool:
        """Return whether any entry of the group has ``position``."""

        return any(entry.position == position for entry in self.entries)


@dataclass(frozen=True)
class AnnotationRecord:
    """Annotation result for one character of an article.

    ``groups`` is empty when the character has no known reading.
    ``preselected_group_index`` is set only when inline markup pinned a
    position for the character.
    """

    character: str
    offset: int
    groups: tuple[AnnotationGroup, ...] = field(default_factory=tuple)
    preselected_group_index: int | None = None

    @property
    def preselected_group(self) -> AnnotationGroup | None:
        """Return the pinned group, if any."""

        if self.preselected_group_index is None:
            return None
        return self.groups[self.preselected_group_index]


class VariantPolicy(Enum):
    """How orthographic variants of a character contribute candidate entries."""

    DISABLED = "disabled"
    ENABLED = "enabled"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class SmallRhymeRow:
    """One position of the inventory with its representative characters.

    Representatives are the first headword per distinct fanqie spelling, in
    store order; ``outputs`` were derived with the first representative.
    """

    position: Position
    outputs: tuple[str, ...]
    representatives: tuple[str, ...]


@dataclass(frozen=True)
class SyllableCount:
    """Distinct joined transcription with the number of positions yielding it."""

    syllable: str
    count: int


@dataclass(frozen=True)
class PresetSegment:
    """Either plain text or one annotated character of a preset document."""

    text: str
    position: Position | None = None
    outputs: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_annotated(self) -> bool:
        return self.position is not None


@dataclass(frozen=True)
class PresetLine:
    """One line of a preset document as an ordered run of segments."""

    segments: tuple[PresetSegment, ...]


@dataclass(frozen=True)
class PresetParagraph:
    """Blank-line separated block: a heading line followed by body lines."""

    heading: PresetLine
    body: tuple[PresetLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DerivationScheme:
    """User-authored derivation logic and the settings chosen for it.

    ``source`` is untrusted script text; ``settings`` maps parameter names to
    chosen values and is validated against the parameters the script
    declares when it is compiled.
    """

    scheme_id: str
    source: str
    settings: Mapping[str, Any] = field(default_factory=dict)
    id: int = 0
