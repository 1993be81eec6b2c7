"""Position store interface and its TSV-backed implementation."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
import logging
from pathlib import Path
from typing import Iterable, Iterator, Protocol

from autoderiver.errors import InvalidDescriptionError
from autoderiver.models import DictionaryEntry
from autoderiver.phonology.position import Position, strict_adapt

logger = logging.getLogger(__name__)

DICTIONARY_COLUMNS = ("headword", "position", "fanqie", "gloss")


class PositionStore(Protocol):
    """Source of dictionary entries and phonological positions."""

    def by_headword(self, headword: str) -> Iterable[DictionaryEntry]:
        """Return the entries of ``headword`` in store order."""
        ...

    def by_position(self, position: Position) -> Iterable[DictionaryEntry]:
        """Return the entries classified under ``position`` in store order."""
        ...

    def all(self) -> Iterable[Position]:
        """Return every known position exactly once, in store order."""
        ...

    def parse_description(self, text: str) -> Position:
        """Parse a description; raise ``InvalidDescriptionError`` when invalid."""
        ...

    def strict_adapt(self, position: Position) -> Position | None:
        """Validate and normalize a position, returning ``None`` if inadmissible."""
        ...

    def equals(self, a: Position, b: Position) -> bool:
        ...

    def describe(self, position: Position) -> str:
        ...


def parse_dictionary_lines(lines: Iterable[str]) -> list[DictionaryEntry]:
    """Parse dictionary TSV lines into entries.

    Columns are ``headword``, ``position`` (canonical description), ``fanqie``
    and ``gloss``. A header row naming those columns is optional; blank lines
    and ``#`` comments are skipped. An empty fanqie cell becomes ``None``.
    Positions are normalized with :func:`strict_adapt`; rows whose position
    does not occur are reported with the other invalid rows.

    Args:
        lines: Raw file lines.

    Returns:
        Entries in file order.

    Raises:
        ValueError: If any row has a missing headword or an invalid position.
    """

    rows = [line.rstrip("\n") for line in lines]
    rows = [line for line in rows if line.strip() and not line.lstrip().startswith("#")]
    if not rows:
        return []

    header_cells = [cell.strip() for cell in rows[0].split("\t")]
    if set(DICTIONARY_COLUMNS[:2]).issubset(header_cells):
        indexes = [
            header_cells.index(name) if name in header_cells else None
            for name in DICTIONARY_COLUMNS
        ]
        data_rows = rows[1:]
        first_row_number = 2
    else:
        indexes = [0, 1, 2, 3]
        data_rows = rows
        first_row_number = 1

    entries: list[DictionaryEntry] = []
    errors: list[str] = []
    for number, line in enumerate(data_rows, start=first_row_number):
        cells = [cell.strip() for cell in line.split("\t")]
        headword, description, fanqie, gloss = (
            cells[idx] if idx is not None and idx < len(cells) else "" for idx in indexes
        )
        if len(headword) != 1:
            errors.append(f"Row {number}: invalid headword '{headword}'")
            continue
        try:
            parsed = Position.from_description(description)
        except InvalidDescriptionError as err:
            errors.append(f"Row {number}: {err}")
            continue
        position = strict_adapt(parsed)
        if position is None:
            errors.append(f"Row {number}: position '{description}' does not occur")
            continue
        entries.append(
            DictionaryEntry(
                headword=headword,
                fanqie=fanqie or None,
                gloss=gloss,
                position=position,
            )
        )

    if errors:
        preview = "\n".join(f"- {item}" for item in errors[:25])
        rest = len(errors) - min(25, len(errors))
        more = f"\n- ... and {rest} more" if rest > 0 else ""
        raise ValueError(f"Dictionary validation failed with {len(errors)} errors:\n{preview}{more}")

    return entries


@dataclass(frozen=True)
class PositionRepository:
    """Read-only position store backed by a dictionary TSV file.

    The file is parsed once on first access and indexed by headword and by
    position. Store order for positions is the order in which each position
    first appears in the file.
    """

    path: Path

    @cached_property
    def entries(self) -> tuple[DictionaryEntry, ...]:
        """Load and cache entries from disk.

        Raises:
            FileNotFoundError: If the dictionary file does not exist.
        """

        if not self.path.exists():
            raise FileNotFoundError(f"Dictionary file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as handle:
            entries = tuple(parse_dictionary_lines(handle))
        logger.debug("Loaded %d dictionary entries from %s", len(entries), self.path)
        return entries

    @cached_property
    def entries_by_headword(self) -> dict[str, tuple[DictionaryEntry, ...]]:
        mapping: dict[str, list[DictionaryEntry]] = {}
        for entry in self.entries:
            mapping.setdefault(entry.headword, []).append(entry)
        return {headword: tuple(items) for headword, items in mapping.items()}

    @cached_property
    def entries_by_position(self) -> dict[Position, tuple[DictionaryEntry, ...]]:
        mapping: dict[Position, list[DictionaryEntry]] = {}
        for entry in self.entries:
            mapping.setdefault(entry.position, []).append(entry)
        return {position: tuple(items) for position, items in mapping.items()}

    def by_headword(self, headword: str) -> tuple[DictionaryEntry, ...]:
        return self.entries_by_headword.get(headword, ())

    def by_position(self, position: Position) -> tuple[DictionaryEntry, ...]:
        return self.entries_by_position.get(position, ())

    def all(self) -> Iterator[Position]:
        return iter(self.entries_by_position)

    def parse_description(self, text: str) -> Position:
        return Position.from_description(text)

    def strict_adapt(self, position: Position) -> Position | None:
        return strict_adapt(position)

    def equals(self, a: Position, b: Position) -> bool:
        return a == b

    def describe(self, position: Position) -> str:
        return position.description
