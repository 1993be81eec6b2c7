"""Per-character annotation of free text."""

from __future__ import annotations

import logging
from typing import Callable

from autoderiver.engine.deriver import Deriver
from autoderiver.engine.disambiguation import parse_inline_position
from autoderiver.models import (
    AnnotationGroup,
    AnnotationRecord,
    DictionaryEntry,
    VariantPolicy,
)
from autoderiver.phonology.position import Position
from autoderiver.phonology.repository import PositionStore
from autoderiver.phonology.variants import VariantResolver

logger = logging.getLogger(__name__)


class GroupAccumulator:
    """Append-only annotation groups keyed by output vector.

    Groups keep first-discovery order and entries keep insertion order;
    adding never reorders earlier groups.
    """

    def __init__(self) -> None:
        self._outputs: list[tuple[str, ...]] = []
        self._entries: list[list[DictionaryEntry]] = []
        self._index_by_outputs: dict[tuple[str, ...], int] = {}

    def __len__(self) -> int:
        return len(self._outputs)

    def add(self, outputs: tuple[str, ...], entry: DictionaryEntry) -> int:
        """Add ``entry`` to the group with equal outputs; return its index."""

        index = self._index_by_outputs.get(outputs)
        if index is None:
            index = len(self._outputs)
            self._index_by_outputs[outputs] = index
            self._outputs.append(outputs)
            self._entries.append([])
        self._entries[index].append(entry)
        return index

    def find_position(
        self, position: Position, equals: Callable[[Position, Position], bool]
    ) -> int | None:
        """Return the index of the first group holding ``position``."""

        for index, entries in enumerate(self._entries):
            if any(equals(entry.position, position) for entry in entries):
                return index
        return None

    def groups(self) -> tuple[AnnotationGroup, ...]:
        return tuple(
            AnnotationGroup(outputs=outputs, entries=tuple(entries))
            for outputs, entries in zip(self._outputs, self._entries)
        )


def _add_headword(
    accumulator: GroupAccumulator,
    headword: str,
    store: PositionStore,
    deriver: Deriver,
) -> None:
    for entry in store.by_headword(headword):
        accumulator.add(deriver.derive(entry.position, headword), entry)


def annotate_character(
    text: str,
    index: int,
    store: PositionStore,
    variants: VariantResolver,
    deriver: Deriver,
    policy: VariantPolicy = VariantPolicy.DISABLED,
) -> tuple[AnnotationRecord, int]:
    """Annotate ``text[index]`` and find where the next character starts.

    Entries of the character come first, then (depending on ``policy``) the
    entries of its variants. Inline markup right after the character pins a
    group, synthesizing an entry when no candidate has the pinned position.

    Returns:
        The record and the offset following the character and any markup.

    Raises:
        DerivationError: If a derivation function fails.
    """

    character = text[index]
    accumulator = GroupAccumulator()
    _add_headword(accumulator, character, store, deriver)

    if policy is VariantPolicy.ENABLED or (
        policy is VariantPolicy.FALLBACK and len(accumulator) == 0
    ):
        seen = {character}
        for variant in variants.variants_of(character):
            if variant in seen:
                continue
            seen.add(variant)
            _add_headword(accumulator, variant, store, deriver)

    preselect: int | None = None
    next_index = index + 1
    match = parse_inline_position(text, index, store)
    if match is not None:
        preselect = accumulator.find_position(match.position, store.equals)
        if preselect is None:
            entry = DictionaryEntry(headword=character, fanqie=None, gloss="", position=match.position)
            preselect = accumulator.add(deriver.derive(match.position, character), entry)
        next_index += match.consumed

    record = AnnotationRecord(
        character=character,
        offset=index,
        groups=accumulator.groups(),
        preselected_group_index=preselect,
    )
    return record, next_index


def annotate_article(
    text: str,
    store: PositionStore,
    variants: VariantResolver,
    deriver: Deriver,
    policy: VariantPolicy = VariantPolicy.DISABLED,
) -> list[AnnotationRecord]:
    """Annotate every character of ``text`` left to right.

    Markup spans consumed by disambiguation do not produce records of their
    own. Characters without any reading still produce a record with no groups.

    Raises:
        DerivationError: If a derivation function fails; no records are
            returned in that case.
    """

    records: list[AnnotationRecord] = []
    index = 0
    while index < len(text):
        record, index = annotate_character(text, index, store, variants, deriver, policy)
        records.append(record)

    logger.debug(
        "Annotated %d characters (%d with readings, %d pinned)",
        len(records),
        sum(1 for record in records if record.groups),
        sum(1 for record in records if record.preselected_group_index is not None),
    )
    return records
