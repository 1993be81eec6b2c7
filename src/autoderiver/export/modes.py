"""Batch export strategies over the full position inventory."""

from __future__ import annotations

from collections import Counter
import logging

from autoderiver.engine.deriver import Deriver
from autoderiver.models import SmallRhymeRow, SyllableCount
from autoderiver.phonology.position import Position
from autoderiver.phonology.repository import PositionStore

logger = logging.getLogger(__name__)

OUTPUT_SEPARATOR = " / "


def representatives(store: PositionStore, position: Position) -> tuple[str, ...]:
    """Return the first headword per distinct fanqie spelling of ``position``.

    Entries without a fanqie share one slot.
    """

    seen: dict[str | None, str] = {}
    for entry in store.by_position(position):
        seen.setdefault(entry.fanqie, entry.headword)
    return tuple(seen.values())


def enumerate_small_rhymes(store: PositionStore, deriver: Deriver) -> list[SmallRhymeRow]:
    """Derive every store position once, named by its representative characters.

    Outputs are derived with the first representative as the headword.

    Raises:
        DerivationError: If a derivation function fails for any position.
    """

    rows: list[SmallRhymeRow] = []
    for position in store.all():
        reps = representatives(store, position)
        headword = reps[0] if reps else None
        rows.append(
            SmallRhymeRow(
                position=position,
                outputs=deriver.derive(position, headword),
                representatives=reps,
            )
        )
    logger.debug("Enumerated %d small rhymes", len(rows))
    return rows


def _joined_syllables(store: PositionStore, deriver: Deriver) -> list[str]:
    return [
        OUTPUT_SEPARATOR.join(deriver.derive(position, None)) for position in store.all()
    ]


def enumerate_syllables(store: PositionStore, deriver: Deriver) -> list[str]:
    """Return the distinct joined transcriptions in first-appearance order.

    Derivation runs without a headword, so schemes that depend on ``字頭``
    fail here.

    Raises:
        DerivationError: If a derivation function fails for any position.
    """

    return list(dict.fromkeys(_joined_syllables(store, deriver)))


def enumerate_syllable_counts(store: PositionStore, deriver: Deriver) -> list[SyllableCount]:
    """Count how many positions yield each joined transcription.

    Sorted by descending count; ties keep first-appearance order.

    Raises:
        DerivationError: If a derivation function fails for any position.
    """

    counts = Counter(_joined_syllables(store, deriver))
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [SyllableCount(syllable=syllable, count=count) for syllable, count in ordered]
