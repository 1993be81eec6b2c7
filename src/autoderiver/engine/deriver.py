"""Run every active derivation function for one position."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from autoderiver.errors import DerivationError
from autoderiver.models import DerivationScheme
from autoderiver.phonology.position import Position
from autoderiver.scheme.compiler import compile_schemes

DerivationCallable = Callable[[Position, "str | None"], str]


@dataclass(frozen=True)
class Deriver:
    """Ordered set of derivation functions applied together.

    Output vectors are tuples so they can key group lookups directly.
    """

    functions: tuple[DerivationCallable, ...]

    @classmethod
    def from_schemes(cls, schemes: Sequence[DerivationScheme]) -> Deriver:
        """Compile ``schemes``; raises ``CompilationError`` before any derivation."""

        return cls(functions=tuple(compile_schemes(schemes)))

    def derive(self, position: Position, headword: str | None) -> tuple[str, ...]:
        """Return one transcription per function.

        Raises:
            DerivationError: If any function raises; the original exception is
                chained as the cause.
        """

        try:
            return tuple(function(position, headword) for function in self.functions)
        except Exception as err:
            raise DerivationError(position, headword) from err
