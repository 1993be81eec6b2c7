"""Repository of orthographic variant characters."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
import logging
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class VariantResolver(Protocol):
    """Source of orthographic variants for a character."""

    def variants_of(self, character: str) -> Sequence[str]:
        """Return the variants of ``character``, excluding the character itself."""
        ...


@dataclass(frozen=True)
class VariantRepository:
    """Variant lookup backed by a two-column TSV file.

    Each row maps a character to a string of its variants, for example
    ``風<TAB>风凬``. An optional header row ``character<TAB>variants`` is
    accepted. Links are made symmetric when loading, so listing ``風 → 风``
    also makes ``风 → 風`` resolvable. Order of first mention is preserved.
    A missing file yields an empty table.
    """

    path: Path

    @cached_property
    def table(self) -> dict[str, tuple[str, ...]]:
        if not self.path.exists():
            logger.debug("Variant table %s not found; variants disabled", self.path)
            return {}

        with self.path.open("r", encoding="utf-8") as handle:
            raw_lines = [line.rstrip("\n") for line in handle]

        lines = [line for line in raw_lines if line.strip() and not line.lstrip().startswith("#")]
        if lines:
            header_cells = [cell.strip() for cell in lines[0].split("\t")]
            if header_cells[:2] == ["character", "variants"]:
                lines = lines[1:]

        mapping: dict[str, list[str]] = {}

        def link(source: str, target: str) -> None:
            if source == target:
                return
            targets = mapping.setdefault(source, [])
            if target not in targets:
                targets.append(target)

        for line in lines:
            cells = [cell.strip() for cell in line.split("\t")]
            if len(cells) < 2 or len(cells[0]) != 1 or not cells[1]:
                logger.warning("Ignoring malformed variant row: %r", line)
                continue
            character = cells[0]
            for variant in cells[1]:
                if variant.isspace():
                    continue
                link(character, variant)
                link(variant, character)

        return {character: tuple(variants) for character, variants in mapping.items()}

    def variants_of(self, character: str) -> tuple[str, ...]:
        return self.table.get(character, ())
