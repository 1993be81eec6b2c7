"""Scheme parameter declarations and resolution of user settings."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from types import MappingProxyType
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)

PARAMETER_TYPES = (bool, int, float, str)


@dataclass(frozen=True)
class SchemeParameter:
    """One declared parameter.

    ``choices`` is empty for a free value, whose type is the type of
    ``default``; otherwise the value must be one of ``choices``.
    """

    name: str
    default: Any
    choices: tuple[Any, ...] = field(default_factory=tuple)

    def accepts(self, value: Any) -> bool:
        if self.choices:
            return value in self.choices
        return type(value) is type(self.default)


def parse_declarations(raw: Any) -> tuple[SchemeParameter, ...]:
    """Convert a script's parameter declaration list into parameters.

    Declarations are ``[name, default]`` for a free value or
    ``[name, [k, choice1, choice2, ...]]`` for a choice defaulting to the k-th
    (1-based) choice. Bare strings are section labels and are skipped.

    Args:
        raw: Value returned by the script's declaration function.

    Returns:
        Parameters in declaration order.

    Raises:
        ValueError: If the declarations are malformed or repeat a name.
    """

    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"parameter declarations must be a list, got {type(raw).__name__}")

    parameters: list[SchemeParameter] = []
    seen: set[str] = set()
    for item in raw:
        if isinstance(item, str):
            continue
        if not isinstance(item, (list, tuple)) or len(item) != 2 or not isinstance(item[0], str):
            raise ValueError(f"invalid parameter declaration: {item!r}")
        name, spec = item
        if name in seen:
            raise ValueError(f"duplicate parameter '{name}'")
        seen.add(name)

        if isinstance(spec, (list, tuple)):
            if len(spec) < 2 or type(spec[0]) is not int or not 1 <= spec[0] < len(spec):
                raise ValueError(f"invalid choice list for parameter '{name}': {spec!r}")
            choices = tuple(spec[1:])
            if not all(isinstance(choice, PARAMETER_TYPES) for choice in choices):
                raise ValueError(f"unsupported choice for parameter '{name}': {spec!r}")
            parameters.append(SchemeParameter(name=name, default=spec[spec[0]], choices=choices))
        elif isinstance(spec, PARAMETER_TYPES):
            parameters.append(SchemeParameter(name=name, default=spec))
        else:
            raise ValueError(f"unsupported default for parameter '{name}': {spec!r}")
    return tuple(parameters)


def resolve_settings(
    parameters: Sequence[SchemeParameter],
    chosen: Mapping[str, Any],
    scheme_id: str = "",
) -> Mapping[str, Any]:
    """Resolve chosen values against declared parameters.

    The result lists every declared parameter in declaration order. Chosen
    values for undeclared names are dropped; invalid values fall back to the
    parameter default. Both cases are logged as warnings.

    Args:
        parameters: Declared parameters.
        chosen: User-selected values keyed by parameter name.
        scheme_id: Scheme identifier used in log messages.

    Returns:
        Read-only ordered mapping of parameter names to values.
    """

    declared = {parameter.name for parameter in parameters}
    for name in chosen:
        if name not in declared:
            logger.warning("Scheme %s: ignoring undeclared setting '%s'", scheme_id, name)

    settings: dict[str, Any] = {}
    for parameter in parameters:
        if parameter.name not in chosen:
            settings[parameter.name] = parameter.default
            continue
        value = chosen[parameter.name]
        if parameter.accepts(value):
            settings[parameter.name] = value
        else:
            logger.warning(
                "Scheme %s: invalid value %r for '%s'; using default %r",
                scheme_id,
                value,
                parameter.name,
                parameter.default,
            )
            settings[parameter.name] = parameter.default
    return MappingProxyType(settings)
