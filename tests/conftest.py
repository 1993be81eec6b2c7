"""Shared dictionary and variant fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from autoderiver.engine.deriver import Deriver
from autoderiver.phonology.repository import PositionRepository
from autoderiver.phonology.variants import VariantRepository

DICTIONARY_TSV = "\n".join(
    [
        "headword\tposition\tfanqie\tgloss",
        "風\t幫三東平\t方戎\twind",
        "風\t幫三東去\t方鳳\tto blow upon",
        "生\t生開三庚平\t所庚\tto be born",
        "生\t生開三庚去\t所敬\t",
        "行\t匣開二庚平\t戶庚\tto walk",
        "行\t匣開一唐平\t胡郎\trow",
        "中\t知三東平\t陟弓\tmiddle",
        "中\t知三東去\t陟仲\tto hit",
        "東\t端一東平\t德紅\teast",
        "同\t定一東平\t徒紅\tsame",
        "銅\t定一東平\t徒紅\tcopper",
        "童\t定一東平\t徒東\tchild",
        "於\t影開三魚平\t央居\tat",
        "於\t影一模平\t哀都\talas",
        "發\t幫三元入\t方伐\tto issue",
        "清\t清開三清平\t七情\tclear",
        "爽\t生開三陽上\t疏兩\tbright",
        "歌\t見開一歌平\t古俄\tsong",
    ]
) + "\n"

VARIANTS_TSV = "character\tvariants\n風\t风\n東\t同\n"


def _write(path: Path, text: str) -> Path:
    """Write helper for fixture files in tmp directories."""

    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def dictionary_path(tmp_path: Path) -> Path:
    return _write(tmp_path / "dictionary.tsv", DICTIONARY_TSV)


@pytest.fixture
def variants_path(tmp_path: Path) -> Path:
    return _write(tmp_path / "variants.tsv", VARIANTS_TSV)


@pytest.fixture
def store(dictionary_path: Path) -> PositionRepository:
    return PositionRepository(dictionary_path)


@pytest.fixture
def variants(variants_path: Path) -> VariantRepository:
    return VariantRepository(variants_path)


@pytest.fixture
def describing_deriver() -> Deriver:
    """One function returning the canonical description, so every position differs."""

    return Deriver(functions=(lambda position, headword: position.description,))


@pytest.fixture
def initial_tone_deriver() -> Deriver:
    return Deriver(
        functions=(
            lambda position, headword: position.initial,
            lambda position, headword: position.tone,
        )
    )
