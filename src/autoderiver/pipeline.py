"""Top-level orchestration of one export run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from autoderiver.engine.annotate import annotate_article
from autoderiver.engine.deriver import Deriver
from autoderiver.export.modes import (
    enumerate_small_rhymes,
    enumerate_syllable_counts,
    enumerate_syllables,
)
from autoderiver.export.preset import PresetTextFetcher, annotate_preset_text, default_fetcher
from autoderiver.io.text_io import (
    render_annotations,
    render_preset,
    render_small_rhymes,
    render_syllable_counts,
    render_syllables,
)
from autoderiver.models import (
    AnnotationRecord,
    DerivationScheme,
    PresetParagraph,
    SmallRhymeRow,
    SyllableCount,
    VariantPolicy,
)
from autoderiver.phonology.repository import PositionStore
from autoderiver.phonology.variants import VariantResolver

logger = logging.getLogger(__name__)

DEFAULT_ARTICLE = (
    "遙襟甫暢，逸興(曉開三蒸去)遄飛。爽籟發而清風(幫三東平)生(生開三庚平)，"
    "纖歌凝(疑開三蒸平)而白雲遏。睢(心合三脂平)園綠竹，氣(溪開三微去)凌彭澤之樽；"
    "鄴水朱華(匣合二麻平)，光(見合一唐平)照臨(來開三侵平)川之筆。四美具，二難(泥開一寒平)并(幫三清平)。"
    "窮睇(定開四齊去)眄(明四先去)於(影開三魚平)中(知三東平)天，極娛(疑三虞平)遊於(影開三魚平)暇日。"
    "天高地迥，覺(見二江入)宇宙之無窮；興(曉開三蒸去)盡(從開三眞上)悲來，"
    "識(書開三蒸入)盈虛(曉開三魚平)之有數(生三虞去)。望(明三陽平)長(澄開三陽平)安於(影開三魚平)日下(匣開二麻上)，"
    "目吳會(見合一泰去)於(影開三魚平)雲間(見開二山平)。地勢極而南溟(明四青平)深(書開三侵平)，"
    "天柱(澄三虞上)高而北辰遠(云合三元上)。關山難(泥開一寒平)越(云合三元入)，誰悲失路之人。"
    "萍水相(心開三陽平)逢，盡(從開三眞上)是他鄉之客。懷帝閽而不(幫三尤上)見(見開四先去)，"
    "奉宣室以何(匣開一歌平)年？"
)


class ExportMode(Enum):
    """Batch strategy of a run."""

    ARTICLE = "article"
    PRESET = "preset"
    SMALL_RHYMES = "small-rhymes"
    SYLLABLES = "syllables"
    SYLLABLE_COUNTS = "syllable-counts"


@dataclass(frozen=True)
class ExportResult:
    """Result bundle returned by :func:`run_export`.

    Only the attribute matching ``mode`` is populated; ``text`` is always the
    plain-text rendering.
    """

    mode: ExportMode
    text: str
    records: tuple[AnnotationRecord, ...] = field(default_factory=tuple)
    paragraphs: tuple[PresetParagraph, ...] = field(default_factory=tuple)
    small_rhymes: tuple[SmallRhymeRow, ...] = field(default_factory=tuple)
    syllables: tuple[str, ...] = field(default_factory=tuple)
    syllable_counts: tuple[SyllableCount, ...] = field(default_factory=tuple)


def load_scheme(
    path: Path, settings: Mapping[str, Any] | None = None, scheme_id: int = 0
) -> DerivationScheme:
    """Read a scheme script from disk; the file stem becomes its identifier.

    Raises:
        FileNotFoundError: If the script does not exist.
    """

    if not path.exists():
        raise FileNotFoundError(f"Scheme file not found: {path}")
    return DerivationScheme(
        scheme_id=path.stem,
        source=path.read_text(encoding="utf-8"),
        settings=dict(settings or {}),
        id=scheme_id,
    )


def run_export(
    mode: ExportMode,
    schemes: Sequence[DerivationScheme],
    store: PositionStore,
    variants: VariantResolver,
    article: str = DEFAULT_ARTICLE,
    variant_policy: VariantPolicy = VariantPolicy.DISABLED,
    preset_fetcher: PresetTextFetcher | None = None,
) -> ExportResult:
    """Compile ``schemes`` and run one export mode.

    Args:
        mode: Export strategy.
        schemes: Active schemes, in output order.
        store: Position store.
        variants: Variant resolver, used by article mode only.
        article: Input text for article mode.
        variant_policy: Variant handling for article mode.
        preset_fetcher: Preset text source; the process-wide default fetcher
            when ``None``.

    Returns:
        ``ExportResult`` with the structured result and its text rendering.

    Raises:
        CompilationError: If any scheme fails to compile; nothing is derived.
        DerivationError: If any derivation call fails; no partial result.
        InvalidDescriptionError: If the preset text holds a bad description.
        FetchError: If the preset text cannot be retrieved.
    """

    deriver = Deriver.from_schemes(schemes)
    logger.info("Running %s export with %d scheme(s)", mode.value, len(deriver.functions))

    if mode is ExportMode.ARTICLE:
        records = tuple(annotate_article(article, store, variants, deriver, variant_policy))
        return ExportResult(mode=mode, text=render_annotations(records), records=records)

    if mode is ExportMode.PRESET:
        fetcher = preset_fetcher if preset_fetcher is not None else default_fetcher()
        paragraphs = annotate_preset_text(fetcher.fetch(), store, deriver)
        return ExportResult(mode=mode, text=render_preset(paragraphs), paragraphs=paragraphs)

    if mode is ExportMode.SMALL_RHYMES:
        rows = tuple(enumerate_small_rhymes(store, deriver))
        return ExportResult(mode=mode, text=render_small_rhymes(rows), small_rhymes=rows)

    if mode is ExportMode.SYLLABLES:
        syllables = tuple(enumerate_syllables(store, deriver))
        return ExportResult(mode=mode, text=render_syllables(syllables), syllables=syllables)

    counts = tuple(enumerate_syllable_counts(store, deriver))
    return ExportResult(mode=mode, text=render_syllable_counts(counts), syllable_counts=counts)
