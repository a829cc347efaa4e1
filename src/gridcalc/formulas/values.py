"""Cell value types, error kinds and the coercion rules shared by operators
and built-in functions.

A cell value is one of ``int | float`` (Number), ``str`` (Text), ``bool``
(Boolean) or ``CellError``.  ``None`` stands for an empty cell and only ever
comes back from a lookup of an unoccupied address.

Coercion matrix::

    operand   numeric ctx     text ctx        boolean ctx
    Number    itself          display text    non-zero is TRUE
    Text      TypeMismatch    itself          "TRUE"/"FALSE" only
    Boolean   TypeMismatch    TRUE / FALSE    itself
    empty     0               ""              FALSE
    Error     propagates      propagates      propagates
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from gridcalc.formulas.errors import CellErrorSignal


class ErrorKind(str, Enum):
    syntax = "Syntax"
    cycle = "Cycle"
    type_mismatch = "TypeMismatch"
    divide_by_zero = "DivideByZero"
    invalid_range = "InvalidRange"
    unknown_function = "UnknownFunction"
    ref_missing = "RefMissing"


_ERROR_DISPLAY: dict[ErrorKind, str] = {
    ErrorKind.syntax: "#SYNTAX!",
    ErrorKind.cycle: "#CYCLE!",
    ErrorKind.type_mismatch: "#VALUE!",
    ErrorKind.divide_by_zero: "#DIV/0!",
    ErrorKind.invalid_range: "#RANGE!",
    ErrorKind.unknown_function: "#NAME?",
    ErrorKind.ref_missing: "#REF!",
}


@dataclass(frozen=True)
class CellError:
    """An error stored as a cell's value."""

    kind: ErrorKind

    @property
    def display(self) -> str:
        return _ERROR_DISPLAY[self.kind]

    def __str__(self) -> str:
        return self.display


CellValue = Union[int, float, str, bool, CellError, None]


def parse_error_code(code: str) -> CellError:
    """``"#REF!"`` -> ``CellError(ErrorKind.ref_missing)``.

    Raises:
        ValueError: If *code* is not one of the display codes.
    """
    upper = code.strip().upper()
    for kind, display in _ERROR_DISPLAY.items():
        if display == upper:
            return CellError(kind)
    raise ValueError(f"Unknown error code: {code!r}")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_error(value: Any) -> Any:
    """Re-raise *value* as a signal if it is an error, else return it."""
    if isinstance(value, CellError):
        raise CellErrorSignal(value.kind)
    return value


def to_number(value: Any) -> int | float:
    """Coerce a scalar for arithmetic."""
    check_error(value)
    if value is None:
        return 0
    if is_number(value):
        return checked_number(value)
    raise CellErrorSignal(
        ErrorKind.type_mismatch, f"Expected a number, got {type(value).__name__}"
    )


def to_text(value: Any, precision: int = 10) -> str:
    """Coerce a scalar for concatenation and text functions."""
    check_error(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if is_number(value):
        return format_number(value, precision)
    return value


def to_bool(value: Any) -> bool:
    """Coerce a scalar for logical tests."""
    check_error(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    upper = value.upper()
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    raise CellErrorSignal(ErrorKind.type_mismatch, f"Expected a boolean, got {value!r}")


# integers from here on are carried as floats
MAX_EXACT_INT = 2**53


def checked_number(result: float | int) -> int | float:
    """Keep a number inside the float range.

    Integers at or past ``MAX_EXACT_INT`` become floats, and anything that
    does not fit a finite float (overflow, NaN, complex) is a type mismatch.
    """
    if isinstance(result, complex):
        raise CellErrorSignal(ErrorKind.type_mismatch, "Complex result")
    if isinstance(result, int) and not isinstance(result, bool) and abs(result) >= MAX_EXACT_INT:
        try:
            result = float(result)
        except OverflowError as exc:
            raise CellErrorSignal(ErrorKind.type_mismatch, "Numeric overflow") from exc
    if isinstance(result, float) and not math.isfinite(result):
        raise CellErrorSignal(ErrorKind.type_mismatch, "Numeric overflow")
    return result


def format_number(value: int | float, precision: int = 10) -> str:
    """Format a number for display: integral floats without decimals."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return f"{value:.{precision}g}"
    return str(value)


def format_value(value: Any, precision: int = 10) -> str:
    """Render any cell value as display text."""
    if value is None:
        return ""
    if isinstance(value, CellError):
        return value.display
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if is_number(value):
        return format_number(value, precision)
    return str(value)


def parse_literal(text: str) -> int | float | bool | str:
    """Classify non-formula cell text as Number, Boolean or Text."""
    stripped = text.strip()
    upper = stripped.upper()
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    if not stripped or "_" in stripped:
        return text
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        number = float(stripped)
    except ValueError:
        return text
    if not math.isfinite(number):
        return text
    return number
