"""Unit tests for compiling schemes into derivation functions."""

from __future__ import annotations

import pytest

from autoderiver.engine.deriver import Deriver
from autoderiver.errors import CompilationError, DerivationError, SchemeRuntimeError
from autoderiver.models import DerivationScheme
from autoderiver.phonology.position import Position
from autoderiver.scheme.compiler import compile_scheme, compile_schemes

SCHEME_WITH_OPTIONS = """
def 選項列表():
    return [
        "格式",
        ["標調", True],
        ["分隔", [1, "", "-"]],
    ]

結果 = 音韻地位.母 + 選項["分隔"] + 音韻地位.韻
if 選項["標調"]:
    結果 += 音韻地位.聲
return 結果
"""

POSITION = Position.from_description("幫三東平")


def test_compiled_function_uses_defaults() -> None:
    """Declared defaults should apply when no settings are chosen."""

    function = compile_scheme(DerivationScheme(scheme_id="demo", source=SCHEME_WITH_OPTIONS))

    assert [parameter.name for parameter in function.parameters] == ["標調", "分隔"]
    assert dict(function.settings) == {"標調": True, "分隔": ""}
    assert function(POSITION, "風") == "幫東平"


def test_chosen_settings_change_output() -> None:
    """Chosen settings should replace the declared defaults."""

    function = compile_scheme(
        DerivationScheme(
            scheme_id="demo",
            source=SCHEME_WITH_OPTIONS,
            settings={"標調": False, "分隔": "-"},
        )
    )

    assert function(POSITION, None) == "幫-東"


def test_headword_binding_is_passed_through() -> None:
    """The headword should reach the script unchanged, including None."""

    function = compile_scheme(DerivationScheme(scheme_id="h", source="return 字頭 or '-'"))

    assert function(POSITION, "風") == "風"
    assert function(POSITION, None) == "-"


def test_syntax_error_names_the_scheme() -> None:
    """Syntax errors should name the scheme that failed."""

    with pytest.raises(CompilationError) as exc_info:
        compile_schemes(
            [
                DerivationScheme(scheme_id="ok", source="return '1'"),
                DerivationScheme(scheme_id="broken", source="return (", id=1),
            ]
        )

    assert exc_info.value.scheme_id == "broken"
    assert "Scheme 'broken' failed to compile" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, SyntaxError)


def test_unsupported_construct_is_a_compilation_error() -> None:
    """Disallowed syntax should fail at compile time."""

    with pytest.raises(CompilationError, match="unsupported syntax: Import"):
        compile_scheme(DerivationScheme(scheme_id="evil", source="import os\nreturn 'x'"))


def test_failing_parameter_declaration_is_a_compilation_error() -> None:
    """A malformed parameter declaration should fail at compile time."""

    source = "def 選項列表():\n    return [['a', [5, 'x']]]\nreturn 'x'"

    with pytest.raises(CompilationError, match="failed to declare its parameters") as exc_info:
        compile_scheme(DerivationScheme(scheme_id="params", source=source))

    assert isinstance(exc_info.value.__cause__, ValueError)


def test_non_string_result_fails_derivation() -> None:
    """Schemes returning anything but a string should fail derivation."""

    deriver = Deriver.from_schemes([DerivationScheme(scheme_id="n", source="return 1")])

    with pytest.raises(DerivationError) as exc_info:
        deriver.derive(POSITION, "風")

    assert isinstance(exc_info.value.__cause__, TypeError)


def test_runtime_error_is_wrapped_with_position_and_headword() -> None:
    """Runtime errors should be wrapped with the position and headword."""

    deriver = Deriver.from_schemes(
        [DerivationScheme(scheme_id="e", source="error('unsupported ' + 音韻地位.描述)")]
    )

    with pytest.raises(DerivationError) as exc_info:
        deriver.derive(POSITION, "風")

    assert str(exc_info.value) == "Derivation failed for character '風' (position: 幫三東平)"
    assert isinstance(exc_info.value.__cause__, SchemeRuntimeError)
    assert str(exc_info.value.__cause__) == "unsupported 幫三東平"


def test_missing_headword_phrasing() -> None:
    """Errors without a headword should say so explicitly."""

    deriver = Deriver.from_schemes(
        [DerivationScheme(scheme_id="h", source="return 字頭 + 音韻地位.韻")]
    )

    assert deriver.derive(POSITION, "風") == ("風東",)
    with pytest.raises(DerivationError, match=r"position 幫三東平 \(headword is None\)"):
        deriver.derive(POSITION, None)


def test_mutable_choice_is_rejected_so_calls_stay_independent() -> None:
    """A choice list holding a list should not compile; calls share no state."""

    source = "\n".join(
        [
            "def 選項列表():",
            "    return [['log', [1, [], ['x']]]]",
            "選項['log'].append(1)",
            "return str(len(選項['log']))",
        ]
    )

    with pytest.raises(CompilationError, match="failed to declare its parameters") as exc_info:
        compile_scheme(DerivationScheme(scheme_id="stateful", source=source))

    assert "unsupported choice" in str(exc_info.value.__cause__)


def test_repeated_calls_return_the_same_output() -> None:
    """Script-level containers are rebuilt on every call."""

    source = "\n".join(
        [
            "def 選項列表():",
            "    return [['sep', [1, '-', '.']]]",
            "seen = []",
            "seen.append(音韻地位.描述)",
            "return str(len(seen)) + 選項['sep']",
        ]
    )
    function = compile_scheme(DerivationScheme(scheme_id="local", source=source))

    assert [function(POSITION, "風") for _ in range(3)] == ["1-", "1-", "1-"]
