"""Exception hierarchy raised by the annotation and derivation engine.

Every failure that unwinds out of a run derives from :class:`AutoderiverError`
so the boundary (CLI or any other caller) can present it uniformly. Only
:class:`InvalidDescriptionError` is ever handled inside the engine, by the
inline disambiguation parser, where a bad description is plain text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from autoderiver.phonology.position import Position


class AutoderiverError(Exception):
    """Base class for all engine errors."""


class InvalidDescriptionError(AutoderiverError, ValueError):
    """Raised when text is not a valid phonological position description."""

    def __init__(self, message: str, *, description: str) -> None:
        super().__init__(message)
        self.description = description


class InvalidPredicateError(AutoderiverError, ValueError):
    """Raised when a ``屬於`` predicate expression cannot be parsed."""

    def __init__(self, message: str, *, expression: str) -> None:
        super().__init__(message)
        self.expression = expression


class CompilationError(AutoderiverError):
    """Raised when a scheme body cannot be turned into a derivation function.

    Names the offending scheme but never a character: compilation happens
    before any text is processed.
    """

    def __init__(self, message: str, *, scheme_id: str) -> None:
        super().__init__(message)
        self.scheme_id = scheme_id


class SchemeRuntimeError(AutoderiverError):
    """Raised by the script interpreter for operations a scheme may not perform."""


class DerivationError(AutoderiverError):
    """Raised when a compiled derivation function fails for one input.

    The message distinguishes a call with a concrete headword from a call
    where only the position is known (enumeration modes pass ``None``).
    """

    def __init__(self, position: Position, headword: str | None) -> None:
        if headword is not None:
            message = (
                f"Derivation failed for character '{headword}' "
                f"(position: {position.description})"
            )
        else:
            message = f"Derivation failed for position {position.description} (headword is None)"
        super().__init__(message)
        self.position = position
        self.headword = headword


class FetchError(AutoderiverError):
    """Raised when the preset reference text cannot be retrieved."""

    def __init__(self, message: str, *, source: str) -> None:
        super().__init__(message)
        self.source = source


def format_error_chain(err: BaseException) -> str:
    """Render an error message followed by every chained cause.

    Args:
        err: Exception to describe.

    Returns:
        One line per exception in the ``__cause__`` chain, outermost first.
    """

    lines = [str(err) or type(err).__name__]
    cause = err.__cause__
    while cause is not None:
        lines.append(f"{type(cause).__name__}: {cause}")
        cause = cause.__cause__
    return "\n".join(lines)
