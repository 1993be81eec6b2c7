"""Parser for ``屬於`` predicate expressions over phonological positions.

Grammar, lowest precedence first::

    expression := conjunction ("或" conjunction)*
    conjunction := negation ("且"? negation)*
    negation   := "非" negation | atom
    atom       := "(" expression ")" | term

Terms are whitespace separated. A term is a run of field values followed by
the field marker, e.g. ``幫滂母``, ``一二等``, ``東冬韻``, ``平上聲``, ``幫組``,
``脣音``, ``A類``; the fixed terms ``開口``, ``合口``, ``開合中立``, ``舒聲``
and ``仄聲`` are also accepted.
"""

from __future__ import annotations

from functools import lru_cache
import re
from typing import TYPE_CHECKING, Callable

from autoderiver.errors import InvalidPredicateError
from autoderiver.phonology.position import (
    ARTICULATION_CLASSES,
    DIVISIONS,
    GRADES,
    INITIAL_ALIASES,
    INITIAL_GROUPS,
    INITIALS,
    RHYME_ALIASES,
    RHYMES,
    TONES,
)

if TYPE_CHECKING:
    from autoderiver.phonology.position import Position

Predicate = Callable[["Position"], bool]

TOKEN_RE = re.compile(r"[()（）]|[^\s()（）]+")

FIXED_TERMS: dict[str, Predicate] = {
    "開口": lambda position: position.rounding == "開",
    "合口": lambda position: position.rounding == "合",
    "開合中立": lambda position: position.rounding is None,
    "舒聲": lambda position: position.tone != "入",
    "仄聲": lambda position: position.tone != "平",
}


def _term_predicate(term: str, expression: str) -> Predicate:
    """Compile one term such as ``幫滂母`` into a position predicate."""

    if term in FIXED_TERMS:
        return FIXED_TERMS[term]

    values, marker = term[:-1], term[-1:]
    if not values:
        raise InvalidPredicateError(f"Empty term '{term}' in '{expression}'", expression=expression)

    def check(allowed: str, label: str) -> None:
        unknown = [value for value in values if value not in allowed]
        if unknown:
            raise InvalidPredicateError(
                f"Unknown {label} '{''.join(unknown)}' in '{expression}'", expression=expression
            )

    if marker == "母":
        members = {INITIAL_ALIASES.get(value, value) for value in values}
        unknown = members - set(INITIALS)
        if unknown:
            raise InvalidPredicateError(
                f"Unknown initial '{''.join(sorted(unknown))}' in '{expression}'",
                expression=expression,
            )
        return lambda position: position.initial in members
    if marker == "組":
        check("".join(INITIAL_GROUPS), "initial group")
        members = {initial for value in values for initial in INITIAL_GROUPS[value]}
        return lambda position: position.initial in members
    if marker == "等":
        check(GRADES, "grade")
        return lambda position: position.grade in values
    if marker == "類":
        check(DIVISIONS, "division")
        return lambda position: position.division is not None and position.division in values
    if marker == "韻":
        members = {RHYME_ALIASES.get(value, value) for value in values}
        unknown = members - set(RHYMES)
        if unknown:
            raise InvalidPredicateError(
                f"Unknown rhyme '{''.join(sorted(unknown))}' in '{expression}'",
                expression=expression,
            )
        return lambda position: position.rhyme in members
    if marker == "聲":
        check(TONES, "tone")
        return lambda position: position.tone in values
    if marker == "音":
        check("".join(ARTICULATION_CLASSES), "articulation class")
        members = {initial for value in values for initial in ARTICULATION_CLASSES[value]}
        return lambda position: position.initial in members

    raise InvalidPredicateError(f"Unknown term '{term}' in '{expression}'", expression=expression)


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = [
            {"（": "(", "）": ")"}.get(token, token) for token in TOKEN_RE.findall(expression)
        ]
        self.index = 0

    def peek(self) -> str | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise InvalidPredicateError(
                f"Unexpected end of expression '{self.expression}'", expression=self.expression
            )
        self.index += 1
        return token

    def parse(self) -> Predicate:
        if not self.tokens:
            raise InvalidPredicateError("Empty predicate expression", expression=self.expression)
        predicate = self.parse_disjunction()
        if self.peek() is not None:
            raise InvalidPredicateError(
                f"Unexpected '{self.peek()}' in '{self.expression}'", expression=self.expression
            )
        return predicate

    def parse_disjunction(self) -> Predicate:
        operands = [self.parse_conjunction()]
        while self.peek() == "或":
            self.take()
            operands.append(self.parse_conjunction())
        if len(operands) == 1:
            return operands[0]
        return lambda position: any(operand(position) for operand in operands)

    def parse_conjunction(self) -> Predicate:
        operands = [self.parse_negation()]
        while self.peek() not in (None, "或", ")"):
            if self.peek() == "且":
                self.take()
            operands.append(self.parse_negation())
        if len(operands) == 1:
            return operands[0]
        return lambda position: all(operand(position) for operand in operands)

    def parse_negation(self) -> Predicate:
        if self.peek() == "非":
            self.take()
            operand = self.parse_negation()
            return lambda position: not operand(position)
        return self.parse_atom()

    def parse_atom(self) -> Predicate:
        token = self.take()
        if token == "(":
            inner = self.parse_disjunction()
            if self.take() != ")":
                raise InvalidPredicateError(
                    f"Unbalanced parenthesis in '{self.expression}'", expression=self.expression
                )
            return inner
        if token in {")", "或", "且"}:
            raise InvalidPredicateError(
                f"Unexpected '{token}' in '{self.expression}'", expression=self.expression
            )
        return _term_predicate(token, self.expression)


@lru_cache(maxsize=1024)
def compile_predicate(expression: str) -> Predicate:
    """Compile a predicate expression, caching the result per expression text.

    Args:
        expression: Expression such as ``"章組 或 以母"``.

    Returns:
        Callable testing a position.

    Raises:
        InvalidPredicateError: If the expression is malformed.
    """

    return _Parser(expression).parse()
