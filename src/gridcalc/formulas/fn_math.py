"""Math and aggregate formula functions.

Aggregates accept ranges.  Inside a range only numbers take part (text,
booleans and empty cells are skipped); a scalar argument must coerce to a
number, so ``SUM("a")`` is a type mismatch while ``SUM(A1:A3)`` over a text
cell is not.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, DecimalException
from typing import Any, Iterator

from gridcalc.formulas.errors import CellErrorSignal
from gridcalc.formulas.registry import RANGE, register
from gridcalc.formulas.values import (
    ErrorKind,
    checked_number,
    is_number,
    to_number,
)


def _numbers(args: list) -> Iterator[int | float]:
    for arg in args:
        if isinstance(arg, list):
            for value in arg:
                if is_number(value):
                    yield checked_number(value)
        else:
            yield to_number(arg)


def power(base: int | float, exponent: int | float) -> int | float:
    """``base ^ exponent`` with spreadsheet error semantics."""
    if base == 0 and exponent < 0:
        raise CellErrorSignal(ErrorKind.divide_by_zero, "Zero raised to a negative power")
    try:
        result = math.pow(base, exponent)
    except (OverflowError, ValueError) as exc:
        raise CellErrorSignal(ErrorKind.type_mismatch, str(exc)) from exc
    checked_number(result)
    if isinstance(base, int) and isinstance(exponent, int) and exponent >= 0 and abs(result) < 2**53:
        return int(result)
    return result


@register("SUM", min_args=1, max_args=None, kind=RANGE)
def _fn_sum(args: list, env: Any) -> int | float:
    """SUM(value, ...) -- total of all numbers."""
    return checked_number(sum(_numbers(args)))


@register("PRODUCT", min_args=1, max_args=None, kind=RANGE)
def _fn_product(args: list, env: Any) -> int | float:
    return checked_number(math.prod(_numbers(args)))


@register("MIN", min_args=1, max_args=None, kind=RANGE)
def _fn_min(args: list, env: Any) -> int | float:
    """MIN(value, ...) -- smallest number, 0 when there is none."""
    return min(_numbers(args), default=0)


@register("MAX", min_args=1, max_args=None, kind=RANGE)
def _fn_max(args: list, env: Any) -> int | float:
    """MAX(value, ...) -- largest number, 0 when there is none."""
    return max(_numbers(args), default=0)


@register("AVERAGE", min_args=1, max_args=None, kind=RANGE)
def _fn_average(args: list, env: Any) -> float:
    values = list(_numbers(args))
    if not values:
        raise CellErrorSignal(ErrorKind.divide_by_zero, "AVERAGE of no numbers")
    return checked_number(checked_number(sum(values)) / len(values))


@register("COUNT", min_args=1, max_args=None, kind=RANGE)
def _fn_count(args: list, env: Any) -> int:
    """COUNT(value, ...) -- how many arguments or range cells are numbers."""
    total = 0
    for arg in args:
        values = arg if isinstance(arg, list) else [arg]
        total += sum(1 for value in values if is_number(value))
    return total


@register("COUNTA", min_args=1, max_args=None, kind=RANGE)
def _fn_counta(args: list, env: Any) -> int:
    """COUNTA(value, ...) -- how many arguments or range cells are non-empty."""
    total = 0
    for arg in args:
        values = arg if isinstance(arg, list) else [arg]
        total += sum(1 for value in values if value is not None)
    return total


@register("ABS")
def _fn_abs(args: list, env: Any) -> int | float:
    return abs(to_number(args[0]))


_MAX_DIGITS = 400


@register("ROUND", min_args=1, max_args=2)
def _fn_round(args: list, env: Any) -> int | float:
    """ROUND(x [, digits]) -- half away from zero, negative digits allowed."""
    value = to_number(args[0])
    digits = int(to_number(args[1])) if len(args) == 2 else 0
    # no float has digits beyond these on either side of the point
    digits = max(-_MAX_DIGITS, min(digits, _MAX_DIGITS))
    try:
        quantum = Decimal(1).scaleb(-digits)
        rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except DecimalException:
        # beyond decimal precision; nothing left to round
        return value
    if digits <= 0:
        return checked_number(int(rounded))
    return checked_number(float(rounded))


@register("INT")
def _fn_int(args: list, env: Any) -> int | float:
    """INT(x) -- round down to the nearest integer."""
    return checked_number(math.floor(to_number(args[0])))


@register("MOD", min_args=2, max_args=2)
def _fn_mod(args: list, env: Any) -> int | float:
    """MOD(a, b) -- remainder with the sign of the divisor."""
    a = to_number(args[0])
    b = to_number(args[1])
    if b == 0:
        raise CellErrorSignal(ErrorKind.divide_by_zero, "MOD by zero")
    return a % b


@register("SQRT")
def _fn_sqrt(args: list, env: Any) -> float:
    value = to_number(args[0])
    if value < 0:
        raise CellErrorSignal(ErrorKind.type_mismatch, "SQRT of a negative number")
    return math.sqrt(value)


@register("POWER", min_args=2, max_args=2)
def _fn_power(args: list, env: Any) -> int | float:
    return power(to_number(args[0]), to_number(args[1]))
