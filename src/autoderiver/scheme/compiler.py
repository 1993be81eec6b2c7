"""Compile derivation schemes into derivation functions."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Mapping, Sequence

from autoderiver.errors import CompilationError
from autoderiver.models import DerivationScheme
from autoderiver.phonology.api import PHONOLOGY_API
from autoderiver.phonology.position import Position
from autoderiver.scheme.interpreter import Program, compile_script
from autoderiver.scheme.parameters import SchemeParameter, parse_declarations, resolve_settings

logger = logging.getLogger(__name__)

PARAMETER_FUNCTION = "選項列表"


@dataclass(frozen=True)
class DerivationFunction:
    """Callable ``(position, headword) -> transcription`` for one scheme.

    Every call runs the script from scratch with the four bindings
    ``Qieyun``, ``選項``, ``音韻地位`` and ``字頭``, so calls are independent of
    each other and of call order.
    """

    scheme_id: str
    program: Program
    parameters: tuple[SchemeParameter, ...]
    settings: Mapping[str, Any]

    def __call__(self, position: Position, headword: str | None) -> str:
        result = self.program.run(
            {
                "Qieyun": PHONOLOGY_API,
                "選項": self.settings,
                "音韻地位": position,
                "字頭": headword,
            }
        )
        if not isinstance(result, str):
            raise TypeError(
                f"scheme '{self.scheme_id}' returned {type(result).__name__}, expected str"
            )
        return result


def declared_parameters(program: Program, scheme_id: str) -> tuple[SchemeParameter, ...]:
    """Collect the parameters a script declares through ``選項列表()``.

    Scripts without that function declare no parameters.

    Raises:
        CompilationError: If the declaration function fails or returns a
            malformed list.
    """

    if not program.defines(PARAMETER_FUNCTION):
        return ()
    try:
        raw = program.call(PARAMETER_FUNCTION, {"Qieyun": PHONOLOGY_API})
        return parse_declarations(raw)
    except Exception as err:
        raise CompilationError(
            f"Scheme '{scheme_id}' failed to declare its parameters: {err}",
            scheme_id=scheme_id,
        ) from err


def compile_scheme(scheme: DerivationScheme) -> DerivationFunction:
    """Compile one scheme against its settings.

    Args:
        scheme: Scheme source and chosen settings.

    Returns:
        Derivation function for the scheme.

    Raises:
        CompilationError: If the source is not a valid script or its
            parameter declarations fail.
    """

    try:
        program = compile_script(scheme.source, name=scheme.scheme_id)
    except SyntaxError as err:
        raise CompilationError(
            f"Scheme '{scheme.scheme_id}' failed to compile: {err.msg} (line {err.lineno})",
            scheme_id=scheme.scheme_id,
        ) from err
    except ValueError as err:
        raise CompilationError(
            f"Scheme '{scheme.scheme_id}' failed to compile: {err}",
            scheme_id=scheme.scheme_id,
        ) from err

    parameters = declared_parameters(program, scheme.scheme_id)
    settings = resolve_settings(parameters, scheme.settings, scheme_id=scheme.scheme_id)
    logger.debug(
        "Compiled scheme %s with %d parameter(s)", scheme.scheme_id, len(parameters)
    )
    return DerivationFunction(
        scheme_id=scheme.scheme_id,
        program=program,
        parameters=parameters,
        settings=settings,
    )


def compile_schemes(schemes: Sequence[DerivationScheme]) -> list[DerivationFunction]:
    """Compile every scheme, in order, before any derivation runs.

    Raises:
        CompilationError: For the first scheme that fails; no function is
            returned for any scheme in that case.
    """

    return [compile_scheme(scheme) for scheme in schemes]
