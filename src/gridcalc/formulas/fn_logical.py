"""Logical formula functions: IF, AND, OR, NOT."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import CellErrorSignal
from gridcalc.formulas.registry import LAZY, RANGE, register
from gridcalc.formulas.values import ErrorKind, is_number, to_bool


def _truth_values(args: list) -> list[bool]:
    values: list[bool] = []
    for arg in args:
        if isinstance(arg, list):
            # only booleans and numbers inside a range take part
            values.extend(bool(v) for v in arg if isinstance(v, bool) or is_number(v))
        else:
            values.append(to_bool(arg))
    if not values:
        raise CellErrorSignal(ErrorKind.type_mismatch, "No logical values")
    return values


@register("AND", min_args=1, max_args=None, kind=RANGE)
def _fn_and(args: list, env: Any) -> bool:
    """AND(val1, val2, ...) -- TRUE if all arguments are truthy."""
    return all(_truth_values(args))


@register("OR", min_args=1, max_args=None, kind=RANGE)
def _fn_or(args: list, env: Any) -> bool:
    """OR(val1, val2, ...) -- TRUE if any argument is truthy."""
    return any(_truth_values(args))


@register("NOT")
def _fn_not(args: list, env: Any) -> bool:
    """NOT(val) -- inverts a boolean value."""
    return not to_bool(args[0])


@register("IF", min_args=2, max_args=3, kind=LAZY)
def _fn_if(raw_args: list, env: Any) -> Any:
    """IF(condition, then_value [, else_value]) -- lazy evaluation."""
    if to_bool(env.eval(raw_args[0])):
        return env.eval(raw_args[1])
    if len(raw_args) == 3:
        return env.eval(raw_args[2])
    return False
