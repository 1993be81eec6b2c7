"""Phonological position value object and its canonical description grammar.

A position is one cell of the Middle Chinese phonological system: initial
(母), optional rounding (呼), grade (等), optional division class (類), rhyme
(韻) and tone (聲). Its canonical description concatenates those fields, for
example ``幫三東平`` or ``見開三A支平``.

:meth:`Position.from_description` only checks the shape of a description and
that every field is a known value. :func:`strict_adapt` additionally applies
the combination rules of the system (which grades a rhyme occurs in, where a
rounding is distinctive, which tones a rhyme admits).
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, ClassVar, Sequence

from autoderiver.errors import InvalidDescriptionError

INITIALS = (
    "幫滂並明"
    "端透定泥"
    "知徹澄孃"
    "精清從心邪"
    "莊初崇生俟"
    "章昌常書船"
    "見溪羣疑"
    "影曉匣云以"
    "來日"
)

INITIAL_GROUPS = {
    "幫": "幫滂並明",
    "端": "端透定泥",
    "知": "知徹澄孃",
    "精": "精清從心邪",
    "莊": "莊初崇生俟",
    "章": "章昌常書船",
    "見": "見溪羣疑",
}

ARTICULATION_CLASSES = {
    "脣": "幫滂並明",
    "舌": "端透定泥知徹澄孃來",
    "齒": "精清從心邪莊初崇生俟章昌常書船日",
    "牙": "見溪羣疑",
    "喉": "影曉匣云以",
}

RHYME_GRADES = {
    "東": "一三",
    "冬": "一",
    "鍾": "三",
    "江": "二",
    "支": "三",
    "脂": "三",
    "之": "三",
    "微": "三",
    "魚": "三",
    "虞": "三",
    "模": "一",
    "齊": "四",
    "祭": "三",
    "泰": "一",
    "佳": "二",
    "皆": "二",
    "夬": "二",
    "灰": "一",
    "咍": "一",
    "廢": "三",
    "眞": "三",
    "臻": "三",
    "文": "三",
    "殷": "三",
    "元": "三",
    "魂": "一",
    "痕": "一",
    "寒": "一",
    "刪": "二",
    "山": "二",
    "先": "四",
    "仙": "三",
    "蕭": "四",
    "宵": "三",
    "肴": "二",
    "豪": "一",
    "歌": "一三",
    "麻": "二三",
    "陽": "三",
    "唐": "一",
    "庚": "二三",
    "耕": "二",
    "清": "三",
    "青": "四",
    "蒸": "三",
    "登": "一",
    "尤": "三",
    "侯": "一",
    "幽": "三",
    "侵": "三",
    "覃": "一",
    "談": "一",
    "鹽": "三",
    "添": "四",
    "咸": "二",
    "銜": "二",
    "嚴": "三",
    "凡": "三",
}

RHYMES = "".join(RHYME_GRADES)
GRADES = "一二三四"
DIVISIONS = "ABC"
TONES = "平上去入"
ROUNDINGS = "開合"

LABIAL_INITIALS = INITIAL_GROUPS["幫"]
ROUNDING_NEUTRAL_RHYMES = "東冬鍾江虞模尤侯幽"
NASAL_CODA_RHYMES = "東冬鍾江眞臻文殷元魂痕寒刪山先仙陽唐庚耕清青蒸登侵覃談鹽添咸銜嚴凡"
DEPARTING_ONLY_RHYMES = "祭泰夬廢"

INITIAL_ALIASES = {"群": "羣", "娘": "孃", "禪": "常", "神": "船", "喻": "以"}
RHYME_ALIASES = {"真": "眞", "諄": "眞", "欣": "殷", "桓": "寒", "戈": "歌"}

DESCRIPTION_RE = re.compile(
    r"^(?P<initial>\S)(?P<rounding>[開合])?(?P<grade>[一二三四])"
    r"(?P<division>[ABC])?(?P<rhyme>\S)(?P<tone>[平上去入])$"
)

_MISSING = object()


@dataclass(frozen=True)
class Position:
    """Immutable phonological position with structural equality.

    Attribute names are English for Python callers; scheme scripts read the
    traditional names (``母``, ``呼``, ``等``, ``類``, ``韻``, ``聲``, ``描述``)
    listed in :attr:`SCRIPT_ATTRIBUTES`.
    """

    SCRIPT_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset(
        {"母", "呼", "等", "類", "韻", "聲", "組", "音", "描述", "屬於", "判斷"}
    )

    initial: str
    rounding: str | None
    grade: str
    division: str | None
    rhyme: str
    tone: str

    @classmethod
    def from_description(cls, description: str) -> Position:
        """Parse a canonical description such as ``曉開三蒸去``.

        Args:
            description: Description text; surrounding whitespace is ignored.

        Returns:
            The described position.

        Raises:
            InvalidDescriptionError: If the text does not have the description
                shape or names an unknown initial or rhyme.
        """

        text = description.strip()
        match = DESCRIPTION_RE.match(text)
        if not match:
            raise InvalidDescriptionError(
                f"Malformed position description: '{description}'", description=description
            )

        initial = INITIAL_ALIASES.get(match.group("initial"), match.group("initial"))
        rhyme = RHYME_ALIASES.get(match.group("rhyme"), match.group("rhyme"))
        if initial not in INITIALS:
            raise InvalidDescriptionError(
                f"Unknown initial '{initial}' in description '{description}'",
                description=description,
            )
        if rhyme not in RHYME_GRADES:
            raise InvalidDescriptionError(
                f"Unknown rhyme '{rhyme}' in description '{description}'",
                description=description,
            )

        return cls(
            initial=initial,
            rounding=match.group("rounding"),
            grade=match.group("grade"),
            division=match.group("division"),
            rhyme=rhyme,
            tone=match.group("tone"),
        )

    @property
    def description(self) -> str:
        """Return the canonical description string."""

        return "".join(
            part
            for part in (
                self.initial,
                self.rounding,
                self.grade,
                self.division,
                self.rhyme,
                self.tone,
            )
            if part
        )

    @property
    def group(self) -> str | None:
        """Return the initial group key (``幫``, ``端`` ...) or ``None``."""

        for key, members in INITIAL_GROUPS.items():
            if self.initial in members:
                return key
        return None

    @property
    def articulation(self) -> str:
        """Return the place-of-articulation class (``脣``, ``舌`` ...)."""

        for key, members in ARTICULATION_CLASSES.items():
            if self.initial in members:
                return key
        raise AssertionError(f"initial '{self.initial}' has no articulation class")

    def matches(self, expression: str) -> bool:
        """Evaluate a ``屬於`` predicate expression against this position."""

        from autoderiver.phonology.predicate import compile_predicate

        return compile_predicate(expression)(self)

    def select(self, rules: Sequence[Sequence[Any]], default: Any = _MISSING) -> Any:
        """Return the result of the first rule whose condition holds.

        Each rule is ``[condition, result]`` where the condition is a predicate
        expression or a plain boolean. A result that is itself a list of rules
        is evaluated recursively.

        Raises:
            LookupError: If no rule matches and no default is given.
        """

        for rule in rules:
            condition, result = rule
            holds = self.matches(condition) if isinstance(condition, str) else bool(condition)
            if not holds:
                continue
            if isinstance(result, list) and result and isinstance(result[0], (list, tuple)):
                return self.select(result, default)
            return result
        if default is _MISSING:
            raise LookupError(f"No rule matched position {self.description}")
        return default

    def __str__(self) -> str:
        return self.description

    # Names used by scheme scripts.

    @property
    def 母(self) -> str:
        return self.initial

    @property
    def 呼(self) -> str | None:
        return self.rounding

    @property
    def 等(self) -> str:
        return self.grade

    @property
    def 類(self) -> str | None:
        return self.division

    @property
    def 韻(self) -> str:
        return self.rhyme

    @property
    def 聲(self) -> str:
        return self.tone

    @property
    def 組(self) -> str | None:
        return self.group

    @property
    def 音(self) -> str:
        return self.articulation

    @property
    def 描述(self) -> str:
        return self.description

    def 屬於(self, expression: str) -> bool:
        return self.matches(expression)

    def 判斷(self, rules: Sequence[Sequence[Any]], default: Any = _MISSING) -> Any:
        return self.select(rules, default)


def strict_adapt(position: Position) -> Position | None:
    """Validate a position against the combination rules of the system.

    Rounding is dropped where it is not distinctive (labial initials and
    rounding-neutral rhymes) and required everywhere else.

    Args:
        position: Position produced by :meth:`Position.from_description`.

    Returns:
        The normalized position, or ``None`` when the combination does not
        occur in the system.
    """

    if position.grade not in RHYME_GRADES[position.rhyme]:
        return None
    if position.division is not None and position.grade != "三":
        return None
    if position.tone == "入" and position.rhyme not in NASAL_CODA_RHYMES:
        return None
    if position.rhyme in DEPARTING_ONLY_RHYMES and position.tone != "去":
        return None

    rounding_neutral = (
        position.initial in LABIAL_INITIALS or position.rhyme in ROUNDING_NEUTRAL_RHYMES
    )
    if rounding_neutral:
        if position.rounding is None:
            return position
        return Position(
            initial=position.initial,
            rounding=None,
            grade=position.grade,
            division=position.division,
            rhyme=position.rhyme,
            tone=position.tone,
        )
    if position.rounding is None:
        return None
    return position
