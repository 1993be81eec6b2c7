"""Restricted interpreter for derivation scheme scripts.

Scheme bodies are written in a subset of Python syntax. They are parsed with
:mod:`ast`, checked against a whitelist of node types, and evaluated by a
tree-walking interpreter; the host never compiles or executes them as Python
code. A script sees only the bindings it is given plus :data:`BUILTINS`, and
may read attributes only from the per-type whitelists in :data:`SAFE_METHODS`
or from a class's ``SCRIPT_ATTRIBUTES``.

Supported statements: expressions, assignment (names, tuple unpacking,
subscripts), augmented assignment, ``if``, ``for``, ``while``, ``break``,
``continue``, ``return`` (also at top level), ``pass``, ``def`` (positional
parameters with defaults) and ``assert``. Supported expressions: literals,
arithmetic, comparisons, boolean logic, conditional expressions, calls,
attribute reads, subscripts and slices, f-strings, ``lambda`` and
comprehensions.

Each invocation has one budget of :data:`MAX_STEPS` loop iterations and
function calls, shared by nested loops and recursion. ``range``, sequence
sizes and call depth are bounded as well.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
import operator
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from autoderiver.errors import SchemeRuntimeError

MAX_STEPS = 1_000_000
MAX_SEQUENCE_LENGTH = 100_000
MAX_CALL_DEPTH = 50

BINARY_OPERATORS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

UNARY_OPERATORS: dict[type, Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

COMPARISON_OPERATORS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

ALLOWED_NODES = (
    frozenset(
        {
            ast.Module,
            ast.Expr,
            ast.Assign,
            ast.AugAssign,
            ast.If,
            ast.For,
            ast.While,
            ast.Break,
            ast.Continue,
            ast.Return,
            ast.Pass,
            ast.FunctionDef,
            ast.Assert,
            ast.arguments,
            ast.arg,
            ast.Lambda,
            ast.Constant,
            ast.Name,
            ast.Load,
            ast.Store,
            ast.List,
            ast.Tuple,
            ast.Dict,
            ast.Set,
            ast.BinOp,
            ast.UnaryOp,
            ast.BoolOp,
            ast.And,
            ast.Or,
            ast.Compare,
            ast.IfExp,
            ast.Call,
            ast.keyword,
            ast.Attribute,
            ast.Subscript,
            ast.Slice,
            ast.JoinedStr,
            ast.FormattedValue,
            ast.ListComp,
            ast.SetComp,
            ast.DictComp,
            ast.GeneratorExp,
            ast.comprehension,
        }
    )
    | frozenset(BINARY_OPERATORS)
    | frozenset(UNARY_OPERATORS)
    | frozenset(COMPARISON_OPERATORS)
)

SAFE_METHODS: dict[type, frozenset[str]] = {
    str: frozenset(
        {
            "count",
            "endswith",
            "find",
            "index",
            "isalpha",
            "isdigit",
            "isspace",
            "join",
            "lower",
            "lstrip",
            "partition",
            "removeprefix",
            "removesuffix",
            "replace",
            "rfind",
            "rpartition",
            "rsplit",
            "rstrip",
            "split",
            "startswith",
            "strip",
            "title",
            "upper",
        }
    ),
    list: frozenset(
        {"append", "copy", "count", "extend", "index", "insert", "pop", "remove", "reverse", "sort"}
    ),
    tuple: frozenset({"count", "index"}),
    dict: frozenset({"copy", "get", "items", "keys", "pop", "setdefault", "update", "values"}),
    set: frozenset({"add", "difference", "discard", "intersection", "issubset", "union"}),
    MappingProxyType: frozenset({"get", "items", "keys", "values"}),
}


def _bounded_range(*args: int) -> range:
    values = range(*args)
    if len(values) > MAX_SEQUENCE_LENGTH:
        raise SchemeRuntimeError(f"range of {len(values)} items exceeds {MAX_SEQUENCE_LENGTH}")
    return values


def _raise_error(message: Any = "error raised by scheme") -> None:
    raise SchemeRuntimeError(str(message))


BUILTINS: Mapping[str, Any] = MappingProxyType(
    {
        "abs": abs,
        "all": all,
        "any": any,
        "bool": bool,
        "dict": dict,
        "enumerate": enumerate,
        "error": _raise_error,
        "float": float,
        "int": int,
        "len": len,
        "list": list,
        "max": max,
        "min": min,
        "range": _bounded_range,
        "reversed": reversed,
        "round": round,
        "set": set,
        "sorted": sorted,
        "str": str,
        "tuple": tuple,
        "zip": zip,
    }
)


class _ReturnSignal(Exception):
    def __init__(self, value: Any) -> None:
        super().__init__()
        self.value = value


class _BreakSignal(Exception):
    pass


class _ContinueSignal(Exception):
    pass


def _syntax_error(message: str, node: ast.AST, filename: str, source: str) -> SyntaxError:
    lineno = getattr(node, "lineno", 1)
    lines = source.splitlines()
    text = lines[lineno - 1] if 0 < lineno <= len(lines) else None
    return SyntaxError(message, (filename, lineno, getattr(node, "col_offset", 0) + 1, text))


def validate_tree(tree: ast.AST, filename: str, source: str) -> None:
    """Reject syntax outside the supported subset.

    Raises:
        SyntaxError: On the first unsupported node, private name, decorator,
            star argument or attribute assignment.
    """

    for node in ast.walk(tree):
        if type(node) not in ALLOWED_NODES:
            raise _syntax_error(f"unsupported syntax: {type(node).__name__}", node, filename, source)
        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise _syntax_error(f"private name '{node.id}' is not allowed", node, filename, source)
        if isinstance(node, ast.Attribute):
            if node.attr.startswith("_"):
                raise _syntax_error(
                    f"private attribute '{node.attr}' is not allowed", node, filename, source
                )
            if isinstance(node.ctx, ast.Store):
                raise _syntax_error("attribute assignment is not allowed", node, filename, source)
        if isinstance(node, ast.FunctionDef):
            if node.decorator_list:
                raise _syntax_error("decorators are not allowed", node, filename, source)
            if node.name.startswith("_"):
                raise _syntax_error(f"private name '{node.name}' is not allowed", node, filename, source)
        if isinstance(node, ast.arguments) and (
            node.vararg or node.kwarg or node.kwonlyargs or node.posonlyargs
        ):
            raise _syntax_error("only plain positional parameters are allowed", node, filename, source)
        if isinstance(node, ast.arg) and node.arg.startswith("_"):
            raise _syntax_error(f"private name '{node.arg}' is not allowed", node, filename, source)
        if isinstance(node, ast.keyword) and node.arg is None:
            raise _syntax_error("'**' arguments are not allowed", node, filename, source)
        if isinstance(node, ast.Dict) and any(key is None for key in node.keys):
            raise _syntax_error("'**' unpacking is not allowed", node, filename, source)
        if isinstance(node, ast.comprehension) and node.is_async:
            raise _syntax_error("async comprehensions are not allowed", node, filename, source)


class Scope:
    """Variable namespace chained to its lexically enclosing scope."""

    __slots__ = ("variables", "parent")

    def __init__(self, variables: dict[str, Any] | None = None, parent: Scope | None = None) -> None:
        self.variables = variables if variables is not None else {}
        self.parent = parent

    def lookup(self, name: str) -> Any:
        scope: Scope | None = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        raise NameError(f"name '{name}' is not defined")


@dataclass(eq=False)
class ScriptFunction:
    """Function defined by a script with ``def`` or ``lambda``."""

    name: str
    parameters: tuple[str, ...]
    defaults: tuple[Any, ...]
    body: Sequence[ast.stmt] | ast.expr
    closure: Scope
    interpreter: Interpreter

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.interpreter.call_function(self, args, kwargs)

    def __repr__(self) -> str:
        return f"<script function {self.name}>"


def get_attribute(obj: Any, name: str) -> Any:
    """Read an attribute a script is allowed to see.

    Raises:
        SchemeRuntimeError: If ``name`` is not whitelisted for ``obj``'s type.
    """

    allowed = SAFE_METHODS.get(type(obj))
    if allowed is None:
        allowed = getattr(type(obj), "SCRIPT_ATTRIBUTES", frozenset())
    if name not in allowed:
        raise SchemeRuntimeError(f"'{type(obj).__name__}' object has no script attribute '{name}'")
    return getattr(obj, name)


def _check_size(value: Any) -> Any:
    if isinstance(value, (str, list, tuple)) and len(value) > MAX_SEQUENCE_LENGTH:
        raise SchemeRuntimeError(f"sequence of {len(value)} items exceeds {MAX_SEQUENCE_LENGTH}")
    return value


class Interpreter:
    """Evaluates one script invocation; holds the call depth and step count."""

    def __init__(self) -> None:
        self.depth = 0
        self.steps = 0

    def step(self) -> None:
        self.steps += 1
        if self.steps > MAX_STEPS:
            raise SchemeRuntimeError(f"script exceeded {MAX_STEPS} steps")

    # Statements

    def exec_block(self, statements: Sequence[ast.stmt], scope: Scope) -> None:
        for statement in statements:
            self.exec_statement(statement, scope)

    def exec_statement(self, node: ast.stmt, scope: Scope) -> None:
        handler = getattr(self, f"_exec_{type(node).__name__}", None)
        if handler is None:
            raise SchemeRuntimeError(f"unsupported statement: {type(node).__name__}")
        handler(node, scope)

    def _exec_Expr(self, node: ast.Expr, scope: Scope) -> None:
        self.evaluate(node.value, scope)

    def _exec_Assign(self, node: ast.Assign, scope: Scope) -> None:
        value = self.evaluate(node.value, scope)
        for target in node.targets:
            self.assign(target, value, scope)

    def _exec_AugAssign(self, node: ast.AugAssign, scope: Scope) -> None:
        value = self.evaluate(node.value, scope)
        target = node.target
        if isinstance(target, ast.Name):
            current = scope.lookup(target.id)
            scope.variables[target.id] = self.binary(type(node.op), current, value)
        elif isinstance(target, ast.Subscript):
            container = self.evaluate(target.value, scope)
            key = self.evaluate_slice(target.slice, scope)
            container[key] = self.binary(type(node.op), container[key], value)
        else:
            raise SchemeRuntimeError("unsupported augmented assignment target")

    def _exec_If(self, node: ast.If, scope: Scope) -> None:
        if self.evaluate(node.test, scope):
            self.exec_block(node.body, scope)
        else:
            self.exec_block(node.orelse, scope)

    def _exec_For(self, node: ast.For, scope: Scope) -> None:
        iterable = self.evaluate(node.iter, scope)
        for item in iterable:
            self.step()
            self.assign(node.target, item, scope)
            try:
                self.exec_block(node.body, scope)
            except _BreakSignal:
                return
            except _ContinueSignal:
                continue
        self.exec_block(node.orelse, scope)

    def _exec_While(self, node: ast.While, scope: Scope) -> None:
        while self.evaluate(node.test, scope):
            self.step()
            try:
                self.exec_block(node.body, scope)
            except _BreakSignal:
                return
            except _ContinueSignal:
                continue
        self.exec_block(node.orelse, scope)

    def _exec_Break(self, node: ast.Break, scope: Scope) -> None:
        raise _BreakSignal()

    def _exec_Continue(self, node: ast.Continue, scope: Scope) -> None:
        raise _ContinueSignal()

    def _exec_Return(self, node: ast.Return, scope: Scope) -> None:
        raise _ReturnSignal(self.evaluate(node.value, scope) if node.value is not None else None)

    def _exec_Pass(self, node: ast.Pass, scope: Scope) -> None:
        pass

    def _exec_FunctionDef(self, node: ast.FunctionDef, scope: Scope) -> None:
        scope.variables[node.name] = self.make_function(node.name, node.args, node.body, scope)

    def _exec_Assert(self, node: ast.Assert, scope: Scope) -> None:
        if not self.evaluate(node.test, scope):
            message = self.evaluate(node.msg, scope) if node.msg is not None else "assertion failed"
            raise SchemeRuntimeError(str(message))

    def assign(self, target: ast.expr, value: Any, scope: Scope) -> None:
        if isinstance(target, ast.Name):
            scope.variables[target.id] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise ValueError(
                    f"cannot unpack {len(values)} values into {len(target.elts)} targets"
                )
            for element, item in zip(target.elts, values):
                self.assign(element, item, scope)
        elif isinstance(target, ast.Subscript):
            container = self.evaluate(target.value, scope)
            container[self.evaluate_slice(target.slice, scope)] = value
        else:
            raise SchemeRuntimeError(f"cannot assign to {type(target).__name__}")

    # Functions

    def make_function(
        self,
        name: str,
        arguments: ast.arguments,
        body: Sequence[ast.stmt] | ast.expr,
        scope: Scope,
    ) -> ScriptFunction:
        return ScriptFunction(
            name=name,
            parameters=tuple(arg.arg for arg in arguments.args),
            defaults=tuple(self.evaluate(default, scope) for default in arguments.defaults),
            body=body,
            closure=scope,
            interpreter=self,
        )

    def call_function(
        self, function: ScriptFunction, args: Sequence[Any], kwargs: Mapping[str, Any]
    ) -> Any:
        if self.depth >= MAX_CALL_DEPTH:
            raise SchemeRuntimeError(f"call depth exceeded {MAX_CALL_DEPTH}")
        self.step()

        parameters = function.parameters
        if len(args) > len(parameters):
            raise TypeError(
                f"{function.name}() takes {len(parameters)} arguments but {len(args)} were given"
            )
        values = dict(zip(parameters, args))
        for key, value in kwargs.items():
            if key not in parameters:
                raise TypeError(f"{function.name}() got an unexpected keyword argument '{key}'")
            if key in values:
                raise TypeError(f"{function.name}() got multiple values for argument '{key}'")
            values[key] = value
        first_default = len(parameters) - len(function.defaults)
        for index, name in enumerate(parameters):
            if name in values:
                continue
            if index < first_default:
                raise TypeError(f"{function.name}() missing required argument '{name}'")
            values[name] = function.defaults[index - first_default]

        scope = Scope(values, parent=function.closure)
        self.depth += 1
        try:
            if isinstance(function.body, ast.expr):
                return self.evaluate(function.body, scope)
            self.exec_block(function.body, scope)
        except _ReturnSignal as signal:
            return signal.value
        except (_BreakSignal, _ContinueSignal):
            raise SchemeRuntimeError("'break' or 'continue' outside loop") from None
        finally:
            self.depth -= 1
        return None

    # Expressions

    def evaluate(self, node: ast.expr, scope: Scope) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise SchemeRuntimeError(f"unsupported expression: {type(node).__name__}")
        return handler(node, scope)

    def evaluate_slice(self, node: ast.expr, scope: Scope) -> Any:
        if isinstance(node, ast.Slice):
            return slice(
                self.evaluate(node.lower, scope) if node.lower is not None else None,
                self.evaluate(node.upper, scope) if node.upper is not None else None,
                self.evaluate(node.step, scope) if node.step is not None else None,
            )
        return self.evaluate(node, scope)

    def binary(self, op_type: type, left: Any, right: Any) -> Any:
        if op_type is ast.Mult:
            for sequence, times in ((left, right), (right, left)):
                if (
                    isinstance(sequence, (str, list, tuple))
                    and isinstance(times, int)
                    and len(sequence) * times > MAX_SEQUENCE_LENGTH
                ):
                    raise SchemeRuntimeError(f"repetition exceeds {MAX_SEQUENCE_LENGTH} items")
        return _check_size(BINARY_OPERATORS[op_type](left, right))

    def _eval_Constant(self, node: ast.Constant, scope: Scope) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name, scope: Scope) -> Any:
        return scope.lookup(node.id)

    def _eval_List(self, node: ast.List, scope: Scope) -> list[Any]:
        return [self.evaluate(element, scope) for element in node.elts]

    def _eval_Tuple(self, node: ast.Tuple, scope: Scope) -> tuple[Any, ...]:
        return tuple(self.evaluate(element, scope) for element in node.elts)

    def _eval_Set(self, node: ast.Set, scope: Scope) -> set[Any]:
        return {self.evaluate(element, scope) for element in node.elts}

    def _eval_Dict(self, node: ast.Dict, scope: Scope) -> dict[Any, Any]:
        return {
            self.evaluate(key, scope): self.evaluate(value, scope)
            for key, value in zip(node.keys, node.values)
        }

    def _eval_BinOp(self, node: ast.BinOp, scope: Scope) -> Any:
        left = self.evaluate(node.left, scope)
        right = self.evaluate(node.right, scope)
        return self.binary(type(node.op), left, right)

    def _eval_UnaryOp(self, node: ast.UnaryOp, scope: Scope) -> Any:
        return UNARY_OPERATORS[type(node.op)](self.evaluate(node.operand, scope))

    def _eval_BoolOp(self, node: ast.BoolOp, scope: Scope) -> Any:
        value: Any = None
        for operand in node.values:
            value = self.evaluate(operand, scope)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    def _eval_Compare(self, node: ast.Compare, scope: Scope) -> bool:
        left = self.evaluate(node.left, scope)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.evaluate(comparator, scope)
            if not COMPARISON_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp, scope: Scope) -> Any:
        if self.evaluate(node.test, scope):
            return self.evaluate(node.body, scope)
        return self.evaluate(node.orelse, scope)

    def _eval_Call(self, node: ast.Call, scope: Scope) -> Any:
        function = self.evaluate(node.func, scope)
        if not callable(function):
            raise TypeError(f"'{type(function).__name__}' object is not callable")
        args = [self.evaluate(arg, scope) for arg in node.args]
        kwargs = {keyword.arg: self.evaluate(keyword.value, scope) for keyword in node.keywords}
        return _check_size(function(*args, **kwargs))

    def _eval_Attribute(self, node: ast.Attribute, scope: Scope) -> Any:
        return get_attribute(self.evaluate(node.value, scope), node.attr)

    def _eval_Subscript(self, node: ast.Subscript, scope: Scope) -> Any:
        return self.evaluate(node.value, scope)[self.evaluate_slice(node.slice, scope)]

    def _eval_JoinedStr(self, node: ast.JoinedStr, scope: Scope) -> str:
        return _check_size("".join(str(self.evaluate(value, scope)) for value in node.values))

    def _eval_FormattedValue(self, node: ast.FormattedValue, scope: Scope) -> str:
        value = self.evaluate(node.value, scope)
        if node.conversion == ord("s"):
            value = str(value)
        elif node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        spec = self.evaluate(node.format_spec, scope) if node.format_spec is not None else ""
        return format(value, spec)

    def _eval_Lambda(self, node: ast.Lambda, scope: Scope) -> ScriptFunction:
        return self.make_function("<lambda>", node.args, node.body, scope)

    def _eval_ListComp(self, node: ast.ListComp, scope: Scope) -> list[Any]:
        return self.comprehend(node.generators, scope, lambda inner: self.evaluate(node.elt, inner))

    def _eval_GeneratorExp(self, node: ast.GeneratorExp, scope: Scope) -> list[Any]:
        return self.comprehend(node.generators, scope, lambda inner: self.evaluate(node.elt, inner))

    def _eval_SetComp(self, node: ast.SetComp, scope: Scope) -> set[Any]:
        return set(
            self.comprehend(node.generators, scope, lambda inner: self.evaluate(node.elt, inner))
        )

    def _eval_DictComp(self, node: ast.DictComp, scope: Scope) -> dict[Any, Any]:
        pairs = self.comprehend(
            node.generators,
            scope,
            lambda inner: (self.evaluate(node.key, inner), self.evaluate(node.value, inner)),
        )
        return dict(pairs)

    def comprehend(
        self,
        generators: Sequence[ast.comprehension],
        scope: Scope,
        produce: Callable[[Scope], Any],
    ) -> list[Any]:
        """Evaluate comprehension clauses eagerly, one nested scope per clause."""

        results: list[Any] = []

        def walk(index: int, current: Scope) -> None:
            if index == len(generators):
                results.append(produce(current))
                _check_size(results)
                return
            generator = generators[index]
            inner = Scope(parent=current)
            for item in self.evaluate(generator.iter, current):
                self.step()
                self.assign(generator.target, item, inner)
                if all(self.evaluate(condition, inner) for condition in generator.ifs):
                    walk(index + 1, inner)

        walk(0, scope)
        return results


@dataclass(frozen=True)
class Program:
    """A parsed and validated script, ready to be run any number of times."""

    name: str
    tree: ast.Module

    def defines(self, function_name: str) -> bool:
        """Return whether the script defines ``function_name`` at top level."""

        return any(
            isinstance(statement, ast.FunctionDef) and statement.name == function_name
            for statement in self.tree.body
        )

    def run(self, bindings: Mapping[str, Any]) -> Any:
        """Execute the script body and return the value of its ``return``.

        Each call uses a fresh interpreter and scope; nothing persists between
        calls.
        """

        interpreter = Interpreter()
        scope = Scope(dict(bindings), parent=Scope(dict(BUILTINS)))
        try:
            interpreter.exec_block(self.tree.body, scope)
        except _ReturnSignal as signal:
            return signal.value
        except (_BreakSignal, _ContinueSignal):
            raise SchemeRuntimeError("'break' or 'continue' outside loop") from None
        return None

    def call(self, function_name: str, bindings: Mapping[str, Any], *args: Any) -> Any:
        """Define the script's top-level functions and call one of them.

        No other top-level statement is executed.
        """

        interpreter = Interpreter()
        scope = Scope(dict(bindings), parent=Scope(dict(BUILTINS)))
        for statement in self.tree.body:
            if isinstance(statement, ast.FunctionDef):
                interpreter.exec_statement(statement, scope)
        function = scope.variables.get(function_name)
        if not isinstance(function, ScriptFunction):
            raise NameError(f"script does not define '{function_name}'")
        return function(*args)


def compile_script(source: str, name: str = "<scheme>") -> Program:
    """Parse and validate a script.

    Args:
        source: Script text.
        name: Name used as the file name in syntax errors.

    Returns:
        Validated program.

    Raises:
        SyntaxError: If the text is not valid Python syntax or uses
            unsupported constructs.
    """

    tree = ast.parse(source, filename=name, mode="exec")
    validate_tree(tree, name, source)
    return Program(name=name, tree=tree)
