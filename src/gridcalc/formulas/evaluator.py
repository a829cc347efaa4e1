"""Tree-walking evaluator for parsed formula expressions.

Supports:
- Cell references through an injected ``lookup(address)`` callback
- Range references expanded for functions that accept them
- First-error-wins propagation: evaluation runs left to right, outer to
  inner, and the first error met is the result

The evaluator is pure: it owns no state and reads cells only through
``lookup``.
"""

from __future__ import annotations

import operator
from typing import Any, Callable

from gridcalc.address import CellAddress
from gridcalc.formulas import fn_error, fn_logical, fn_math, fn_text  # noqa: F401  (register functions)
from gridcalc.formulas.ast import BinaryOp, Call, CellRef, Expr, Literal, RangeRef, UnaryOp, children
from gridcalc.formulas.errors import CellErrorSignal, FormulaFunctionError
from gridcalc.formulas.fn_math import power
from gridcalc.formulas.registry import LAZY, RANGE, get_function
from gridcalc.formulas.values import (
    CellError,
    CellValue,
    ErrorKind,
    check_error,
    checked_number,
    is_number,
    to_number,
    to_text,
)

Lookup = Callable[[CellAddress], CellValue]


class Environment:
    """What an evaluation can see: cell values, grid bounds, display precision."""

    __slots__ = ("lookup", "max_rows", "max_cols", "precision")

    def __init__(
        self,
        lookup: Lookup,
        max_rows: int | None = None,
        max_cols: int | None = None,
        precision: int = 10,
    ) -> None:
        self.lookup = lookup
        self.max_rows = max_rows
        self.max_cols = max_cols
        self.precision = precision

    def eval(self, node: Expr) -> Any:
        """Evaluate a sub-expression (used by lazy functions)."""
        return _eval(node, self)

    def read(self, address: CellAddress) -> Any:
        """Value at *address*; ``None`` when empty, raises on error values."""
        if (self.max_rows is not None and address.row >= self.max_rows) or (
            self.max_cols is not None and address.col >= self.max_cols
        ):
            raise CellErrorSignal(ErrorKind.ref_missing, f"{address} is outside the grid")
        return check_error(self.lookup(address))


def evaluate(
    expr: Expr,
    lookup: Lookup,
    max_rows: int | None = None,
    max_cols: int | None = None,
    precision: int = 10,
) -> CellValue:
    """Evaluate an expression tree.

    Args:
        expr: Tree from ``parse_formula()``.
        lookup: Returns the current value of a cell, ``None`` if empty.
        max_rows: Grid height; references at or beyond it are ``RefMissing``.
        max_cols: Grid width, same rule.
        precision: Significant digits when numbers are turned into text.

    Returns:
        The computed value, or a ``CellError``.  An empty result (``=A1``
        with A1 empty) evaluates to ``0``.
    """
    env = Environment(lookup, max_rows, max_cols, precision)
    try:
        result = _eval(expr, env)
    except CellErrorSignal as exc:
        return CellError(exc.kind)
    except OverflowError:
        return CellError(ErrorKind.type_mismatch)
    if result is None:
        return 0
    return result


def _eval(node: Expr, env: Environment) -> Any:
    """Recursively evaluate a tree node."""
    if isinstance(node, Literal):
        return check_error(node.value)

    if isinstance(node, CellRef):
        return env.read(node.address)

    if isinstance(node, RangeRef):
        raise CellErrorSignal(ErrorKind.invalid_range, "Range used where a single value is expected")

    if isinstance(node, UnaryOp):
        value = to_number(_eval(node.operand, env))
        if node.op == "-":
            return -value
        if node.op == "+":
            return value
        if node.op == "%":
            return value / 100
        raise CellErrorSignal(ErrorKind.type_mismatch, f"Unknown operator {node.op!r}")

    if isinstance(node, BinaryOp):
        left = _eval(node.left, env)
        right = _eval(node.right, env)
        return _eval_binary(node.op, left, right, env)

    if isinstance(node, Call):
        return _eval_call(node, env)

    raise TypeError(f"Unknown node type: {type(node).__name__}")


# ---------- Operators ----------

_ARITHMETIC = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
}

_ORDERING = {
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


def _eval_binary(op: str, left: Any, right: Any, env: Environment) -> Any:
    if op in _ARITHMETIC:
        a, b = to_number(left), to_number(right)
        return checked_number(_ARITHMETIC[op](a, b))
    if op == "/":
        a, b = to_number(left), to_number(right)
        if b == 0:
            raise CellErrorSignal(ErrorKind.divide_by_zero, "Division by zero in formula")
        return checked_number(a / b)
    if op == "^":
        return power(to_number(left), to_number(right))
    if op == "&":
        return to_text(left, env.precision) + to_text(right, env.precision)
    return _compare(op, left, right)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if is_number(value):
        return "number"
    return "text"


_EMPTY_LIKE = {"bool": False, "number": 0, "text": ""}


def _compare(op: str, left: Any, right: Any) -> bool:
    """Compare two scalars; empty takes the type of the other side."""
    if left is None and right is None:
        left = right = 0
    elif left is None:
        left = _EMPTY_LIKE[_kind(right)]
    elif right is None:
        right = _EMPTY_LIKE[_kind(left)]

    if _kind(left) != _kind(right):
        if op == "=":
            return False
        if op == "<>":
            return True
        raise CellErrorSignal(ErrorKind.type_mismatch, "Cannot order values of different types")

    if isinstance(left, str):
        left, right = left.casefold(), right.casefold()

    if op == "=":
        return left == right
    if op == "<>":
        return left != right
    return _ORDERING[op](left, right)


# ---------- Function dispatch ----------


def _range_values(node: RangeRef, env: Environment) -> list[Any]:
    """Values of every cell in a range, row-major; errors propagate."""
    return [env.read(address) for address in node.addresses()]


def _eval_call(node: Call, env: Environment) -> Any:
    """Evaluate a function call node."""
    spec = get_function(node.name)
    if spec is None:
        raise CellErrorSignal(ErrorKind.unknown_function, f"Unknown function: {node.name!r}")
    if not spec.accepts(len(node.args)):
        raise CellErrorSignal(
            ErrorKind.type_mismatch,
            f"{node.name} does not take {len(node.args)} argument(s)",
        )

    # Lazy functions receive unevaluated AST nodes
    if spec.kind == LAZY:
        return spec.impl(list(node.args), env)

    args: list[Any] = []
    for arg in node.args:
        if spec.kind == RANGE and isinstance(arg, RangeRef):
            args.append(_range_values(arg, env))
        else:
            args.append(_eval(arg, env))
    return spec.impl(args, env)


def check_functions(expr: Expr) -> None:
    """Statically validate every call in *expr*.

    Raises:
        FormulaFunctionError: For an unknown name or a wrong argument count.
    """
    stack: list[Expr] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Call):
            spec = get_function(node.name)
            if spec is None:
                raise FormulaFunctionError(node.name)
            if not spec.accepts(len(node.args)):
                raise FormulaFunctionError(
                    node.name, f"{node.name} does not take {len(node.args)} argument(s)"
                )
        stack.extend(reversed(children(node)))
