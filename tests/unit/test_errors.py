"""Unit tests for the error hierarchy and chained error formatting."""

from __future__ import annotations

from autoderiver.errors import (
    AutoderiverError,
    CompilationError,
    DerivationError,
    InvalidDescriptionError,
    format_error_chain,
)
from autoderiver.phonology.position import Position


def test_description_errors_are_value_errors() -> None:
    """Description errors should be catchable as ValueError."""

    err = InvalidDescriptionError("bad", description="幫三")

    assert isinstance(err, ValueError)
    assert isinstance(err, AutoderiverError)
    assert err.description == "幫三"


def test_format_error_chain_lists_every_cause() -> None:
    """Formatted errors should list every link of the cause chain."""

    position = Position.from_description("幫三東平")
    try:
        try:
            try:
                raise KeyError("x")
            except KeyError as err:
                raise CompilationError("inner", scheme_id="s") from err
        except CompilationError as err:
            raise DerivationError(position, None) from err
    except DerivationError as err:
        rendered = format_error_chain(err)

    assert rendered.splitlines() == [
        "Derivation failed for position 幫三東平 (headword is None)",
        "CompilationError: inner",
        "KeyError: 'x'",
    ]
