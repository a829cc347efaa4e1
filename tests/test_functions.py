"""Tests for the built-in function table."""

from __future__ import annotations

from typing import Any

import pytest

from gridcalc.address import parse_addr
from gridcalc.formulas import CellError, ErrorKind, evaluate, parse_formula
from gridcalc.formulas.registry import LAZY, RANGE, SCALAR, function_names, get_function


def _eval(formula: str, cells: dict[str, Any] | None = None, **kwargs: Any) -> Any:
    values = {parse_addr(k): v for k, v in (cells or {}).items()}
    return evaluate(parse_formula(formula), values.get, **kwargs)


MIXED = {"A1": 1, "A2": "x", "A3": True, "A5": 2.5}


# ────────────────────────────────────────────────────────────────
# Registry
# ────────────────────────────────────────────────────────────────


class TestRegistry:
    def test_all_functions_registered(self) -> None:
        # importing the evaluator registers every module
        import gridcalc.formulas.evaluator  # noqa: F401

        assert function_names() == sorted([
            "ABS", "AND", "AVERAGE", "CONCAT", "COUNT", "COUNTA", "IF", "IFERROR",
            "INT", "ISBLANK", "ISERROR", "LEN", "LOWER", "MAX", "MIN", "MOD", "NOT",
            "OR", "POWER", "PRODUCT", "ROUND", "SQRT", "SUM", "TRIM", "UPPER",
        ])

    def test_lookup_case_insensitive(self) -> None:
        spec = get_function("sum")
        assert spec is not None
        assert spec.name == "SUM"

    def test_unknown(self) -> None:
        assert get_function("NOPE") is None

    def test_kinds(self) -> None:
        assert get_function("SUM").kind == RANGE
        assert get_function("IF").kind == LAZY
        assert get_function("ABS").kind == SCALAR

    def test_accepts(self) -> None:
        spec = get_function("ROUND")
        assert not spec.accepts(0)
        assert spec.accepts(1)
        assert spec.accepts(2)
        assert not spec.accepts(3)
        assert get_function("SUM").accepts(50)


# ────────────────────────────────────────────────────────────────
# Aggregates
# ────────────────────────────────────────────────────────────────


class TestAggregates:
    def test_sum_skips_non_numbers_in_range(self) -> None:
        assert _eval("=SUM(A1:A5)", MIXED) == 3.5

    def test_sum_scalar_text_is_mismatch(self) -> None:
        assert _eval('=SUM("x")') == CellError(ErrorKind.type_mismatch)

    def test_sum_mixes_ranges_and_scalars(self) -> None:
        assert _eval("=SUM(A1:A2, 5, B1)", MIXED) == 6

    def test_product(self) -> None:
        assert _eval("=PRODUCT(A1:A5, 4)", MIXED) == 10

    def test_min_max(self) -> None:
        assert _eval("=MIN(A1:A5)", MIXED) == 1
        assert _eval("=MAX(A1:A5, -3)", MIXED) == 2.5

    def test_min_max_of_nothing(self) -> None:
        assert _eval("=MIN(B1:B3)") == 0
        assert _eval("=MAX(B1:B3)") == 0

    def test_average(self) -> None:
        assert _eval("=AVERAGE(A1:A5)", MIXED) == 1.75

    def test_average_of_nothing(self) -> None:
        assert _eval("=AVERAGE(B1:B3)") == CellError(ErrorKind.divide_by_zero)

    def test_count_numbers_only(self) -> None:
        assert _eval("=COUNT(A1:A5)", MIXED) == 2

    def test_counta_non_empty(self) -> None:
        assert _eval("=COUNTA(A1:A5)", MIXED) == 4


# ────────────────────────────────────────────────────────────────
# Scalar math
# ────────────────────────────────────────────────────────────────


class TestMath:
    def test_abs(self) -> None:
        assert _eval("=ABS(-3)") == 3

    @pytest.mark.parametrize(
        "formula, expected",
        [
            ("=ROUND(2.5)", 3),
            ("=ROUND(-2.5)", -3),
            ("=ROUND(3.14159, 2)", 3.14),
            ("=ROUND(1234, -2)", 1200),
            ("=ROUND(7)", 7),
        ],
    )
    def test_round_half_away_from_zero(self, formula: str, expected: Any) -> None:
        assert _eval(formula) == expected

    def test_int_floors(self) -> None:
        assert _eval("=INT(-1.5)") == -2
        assert _eval("=INT(1.9)") == 1

    def test_mod_sign_of_divisor(self) -> None:
        assert _eval("=MOD(7, 3)") == 1
        assert _eval("=MOD(-7, 3)") == 2

    def test_mod_by_zero(self) -> None:
        assert _eval("=MOD(1, 0)") == CellError(ErrorKind.divide_by_zero)

    def test_sqrt(self) -> None:
        assert _eval("=SQRT(16)") == 4.0
        assert _eval("=SQRT(-1)") == CellError(ErrorKind.type_mismatch)

    def test_power(self) -> None:
        assert _eval("=POWER(2, 3)") == 8


# ────────────────────────────────────────────────────────────────
# Logical
# ────────────────────────────────────────────────────────────────


class TestLogical:
    def test_and_or(self) -> None:
        assert _eval("=AND(TRUE, 1)") is True
        assert _eval("=AND(TRUE, 0)") is False
        assert _eval("=OR(FALSE, 0)") is False
        assert _eval("=OR(FALSE, 2)") is True

    def test_and_over_range(self) -> None:
        assert _eval("=AND(A1:A5)", MIXED) is True

    def test_and_over_text_only_range(self) -> None:
        assert _eval("=AND(A1:A1)", {"A1": "x"}) == CellError(ErrorKind.type_mismatch)

    def test_not(self) -> None:
        assert _eval("=NOT(0)") is True
        assert _eval("=NOT(TRUE)") is False


class TestBlankAndError:
    def test_isblank(self) -> None:
        assert _eval("=ISBLANK(A1)") is True
        assert _eval("=ISBLANK(A1)", {"A1": 0}) is False
        assert _eval("=ISBLANK(A1)", {"A1": ""}) is False


# ────────────────────────────────────────────────────────────────
# Text
# ────────────────────────────────────────────────────────────────


class TestText:
    def test_concat_with_range(self) -> None:
        assert _eval('=CONCAT("a", A1:A2, 1)', {"A1": "b"}) == "ab1"

    def test_len(self) -> None:
        assert _eval('=LEN("hello")') == 5
        assert _eval("=LEN(12.5)") == 4

    def test_case(self) -> None:
        assert _eval('=UPPER("MiXed")') == "MIXED"
        assert _eval('=LOWER("MiXed")') == "mixed"

    def test_trim(self) -> None:
        assert _eval('=TRIM("  a   b ")') == "a b"

    def test_text_of_boolean(self) -> None:
        assert _eval("=LOWER(TRUE)") == "true"

    def test_numbers_use_display_precision(self) -> None:
        cells = {"A1": 1 / 3}
        assert _eval("=CONCAT(A1)", cells, precision=3) == "0.333"
        assert _eval("=CONCAT(A1:A1)", cells, precision=3) == "0.333"
        assert _eval("=LEN(A1)", cells, precision=3) == 5
        assert _eval("=TRIM(A1)", cells, precision=3) == _eval('=A1 & ""', cells, precision=3)
