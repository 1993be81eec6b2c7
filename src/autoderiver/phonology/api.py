"""Phonology namespace handed to scheme scripts as the ``Qieyun`` binding."""

from __future__ import annotations

from functools import lru_cache
from typing import ClassVar

from pypinyin import Style, pinyin

from autoderiver.phonology.position import INITIALS, RHYMES, Position


@lru_cache(maxsize=4096)
def modern_readings(character: str) -> tuple[str, ...]:
    """Return Mandarin readings of a character as tone-numbered pinyin.

    Neutral tone is written with ``5`` so every reading ends in a digit,
    e.g. ``("zhong1", "zhong4")`` for ``中``. Characters pypinyin does not
    know yield an empty tuple.

    Args:
        character: A single Hanzi.

    Returns:
        Readings in pypinyin's order, most common first.
    """

    readings = pinyin(
        character,
        style=Style.TONE3,
        heteronym=True,
        errors="ignore",
        neutral_tone_with_five=True,
    )
    if not readings:
        return ()
    return tuple(readings[0])


class PhonologyApi:
    """Read-only helpers scripts reach through ``Qieyun``.

    ``Qieyun.音韻地位("幫三東平")`` parses a description,
    ``Qieyun.拼音(字頭)`` lists modern readings of the headword, and
    ``Qieyun.所有母`` / ``Qieyun.所有韻`` are the inventories.
    """

    SCRIPT_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset({"音韻地位", "拼音", "所有母", "所有韻"})

    所有母: ClassVar[tuple[str, ...]] = tuple(INITIALS)
    所有韻: ClassVar[tuple[str, ...]] = tuple(RHYMES)

    def 音韻地位(self, description: str) -> Position:
        return Position.from_description(description)

    def 拼音(self, character: str | None) -> list[str]:
        if not character:
            return []
        return list(modern_readings(character))

    def __repr__(self) -> str:
        return "<Qieyun>"


PHONOLOGY_API = PhonologyApi()
