"""Tests for expression evaluation: operators, coercion, error propagation."""

from __future__ import annotations

from typing import Any

import pytest

from gridcalc.address import parse_addr
from gridcalc.formulas import (
    CellError,
    ErrorKind,
    FormulaFunctionError,
    check_functions,
    evaluate,
    parse_formula,
)


def _eval(formula: str, cells: dict[str, Any] | None = None, **kwargs: Any) -> Any:
    values = {parse_addr(k): v for k, v in (cells or {}).items()}
    return evaluate(parse_formula(formula), values.get, **kwargs)


def _err(kind: ErrorKind) -> CellError:
    return CellError(kind)


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


class TestArithmetic:
    def test_precedence(self) -> None:
        assert _eval("=2 + 3 * 4") == 14

    def test_exponent_right_associative(self) -> None:
        assert _eval("=2^3^2") == 512

    def test_unary_minus_with_exponent(self) -> None:
        """-2^2 = -(2^2) = -4 (like Excel)."""
        assert _eval("=-2^2") == -4

    def test_integer_power_stays_int(self) -> None:
        result = _eval("=2^10")
        assert result == 1024
        assert isinstance(result, int)

    def test_division_is_true_division(self) -> None:
        assert _eval("=10/4") == 2.5

    def test_percent(self) -> None:
        assert _eval("=50%") == 0.5
        assert _eval("=200 * 10%") == 20

    def test_divide_by_zero(self) -> None:
        assert _eval("=7/0") == _err(ErrorKind.divide_by_zero)

    def test_divide_by_empty(self) -> None:
        assert _eval("=7/A1") == _err(ErrorKind.divide_by_zero)

    def test_zero_to_negative_power(self) -> None:
        assert _eval("=0^-1") == _err(ErrorKind.divide_by_zero)

    def test_overflowing_power(self) -> None:
        assert _eval("=10^400") == _err(ErrorKind.type_mismatch)

    def test_overflowing_product(self) -> None:
        assert _eval("=1e300 * 1e300") == _err(ErrorKind.type_mismatch)

    def test_complex_power(self) -> None:
        assert _eval("=(-8)^(1/3)") == _err(ErrorKind.type_mismatch)


class TestLargeNumbers:
    BIG = "1" + "0" * 400

    def test_big_integer_division(self) -> None:
        assert _eval(f"={self.BIG}/3") == _err(ErrorKind.type_mismatch)

    def test_big_integer_plus_float(self) -> None:
        assert _eval(f"={self.BIG} + 0.5") == _err(ErrorKind.type_mismatch)

    def test_sqrt_of_big_integer(self) -> None:
        assert _eval(f"=SQRT({self.BIG})") == _err(ErrorKind.type_mismatch)

    def test_big_integer_in_range(self) -> None:
        assert _eval("=SUM(A1:A2)", {"A1": 10**400, "A2": 1}) == _err(ErrorKind.type_mismatch)
        assert _eval("=MAX(A1:A2)", {"A1": 10**400, "A2": 1}) == _err(ErrorKind.type_mismatch)

    def test_integer_within_float_range_becomes_float(self) -> None:
        result = _eval("=A1 + 0.5", {"A1": 10**300})
        assert isinstance(result, float)
        assert result == 1e300

    def test_exact_integers_stay_int(self) -> None:
        result = _eval("=2^52 + 1")
        assert result == 2**52 + 1
        assert isinstance(result, int)

    def test_past_exact_range_is_float(self) -> None:
        assert isinstance(_eval("=9007199254740993 * 1"), float)

    def test_average_of_big_values(self) -> None:
        assert _eval("=AVERAGE(A1:A2)", {"A1": 10**300, "A2": 10**300}) == 1e300

    def test_round_with_extreme_digits(self) -> None:
        assert _eval("=ROUND(1.5, -1e300)") == 0
        assert _eval("=ROUND(1.5, 1e300)") == 1.5

    def test_int_of_large_float(self) -> None:
        assert _eval("=INT(1e300)") == 1e300

    def test_reference_to_big_integer_as_text(self) -> None:
        assert _eval('=A1 & ""', {"A1": 10**20}) == "100000000000000000000"


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


class TestCoercion:
    def test_empty_reference_is_zero(self) -> None:
        assert _eval("=A1") == 0
        assert _eval("=A1 + 1") == 1

    def test_empty_in_text_context(self) -> None:
        assert _eval('=A1 & "x"') == "x"

    def test_text_in_arithmetic(self) -> None:
        assert _eval('="a" + 1') == _err(ErrorKind.type_mismatch)

    def test_numeric_text_is_still_text(self) -> None:
        assert _eval("=A1 * 2", {"A1": "3"}) == _err(ErrorKind.type_mismatch)

    def test_boolean_in_arithmetic(self) -> None:
        assert _eval("=TRUE + 1") == _err(ErrorKind.type_mismatch)

    def test_unary_on_text(self) -> None:
        assert _eval('=-"a"') == _err(ErrorKind.type_mismatch)

    def test_number_to_text(self) -> None:
        assert _eval('=1.5 & "x"') == "1.5x"
        assert _eval('=2.0 & ""') == "2"

    def test_boolean_to_text(self) -> None:
        assert _eval('=TRUE & "!"') == "TRUE!"

    def test_precision_used_for_text(self) -> None:
        assert _eval('=1/3 & ""', precision=3) == "0.333"


class TestComparison:
    def test_numbers(self) -> None:
        assert _eval("=2 > 1") is True
        assert _eval("=2 <= 1") is False

    def test_text_case_insensitive(self) -> None:
        assert _eval('="abc" = "ABC"') is True
        assert _eval('="a" < "B"') is True

    def test_mixed_types_equality(self) -> None:
        assert _eval('=1 = "1"') is False
        assert _eval('=1 <> "1"') is True
        assert _eval("=1 = TRUE") is False

    def test_mixed_types_ordering(self) -> None:
        assert _eval('=1 < "a"') == _err(ErrorKind.type_mismatch)

    def test_empty_takes_other_side(self) -> None:
        assert _eval("=A1 = 0") is True
        assert _eval('=A1 = ""') is True
        assert _eval("=A1 = FALSE") is True
        assert _eval("=A1 = B1") is True

    def test_booleans(self) -> None:
        assert _eval("=TRUE > FALSE") is True


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrorPropagation:
    def test_error_operand_propagates(self) -> None:
        cells = {"A1": _err(ErrorKind.divide_by_zero)}
        assert _eval("=A1 + 1", cells) == _err(ErrorKind.divide_by_zero)

    def test_first_error_wins(self) -> None:
        cells = {"A1": _err(ErrorKind.divide_by_zero), "B1": _err(ErrorKind.type_mismatch)}
        assert _eval("=A1 + B1", cells) == _err(ErrorKind.divide_by_zero)
        assert _eval("=B1 + A1", cells) == _err(ErrorKind.type_mismatch)

    def test_error_through_concat(self) -> None:
        cells = {"A1": _err(ErrorKind.ref_missing)}
        assert _eval('=A1 & "x"', cells) == _err(ErrorKind.ref_missing)

    def test_error_inside_range(self) -> None:
        cells = {"A1": 1, "A2": _err(ErrorKind.syntax), "A3": 3}
        assert _eval("=SUM(A1:A3)", cells) == _err(ErrorKind.syntax)

    def test_range_as_scalar(self) -> None:
        assert _eval("=A1:B2") == _err(ErrorKind.invalid_range)
        assert _eval("=A1:B2 + 1") == _err(ErrorKind.invalid_range)

    def test_range_to_scalar_function(self) -> None:
        assert _eval("=ABS(A1:A2)") == _err(ErrorKind.invalid_range)

    def test_unknown_function_before_arguments(self) -> None:
        assert _eval("=NOPE(1/0)") == _err(ErrorKind.unknown_function)

    def test_wrong_arity(self) -> None:
        assert _eval("=ABS(1, 2)") == _err(ErrorKind.type_mismatch)
        assert _eval("=ABS()") == _err(ErrorKind.type_mismatch)
        assert _eval("=IF(TRUE)") == _err(ErrorKind.type_mismatch)

    def test_reference_outside_grid(self) -> None:
        assert _eval("=B1", max_rows=10, max_cols=1) == _err(ErrorKind.ref_missing)
        assert _eval("=A11", max_rows=10, max_cols=1) == _err(ErrorKind.ref_missing)

    def test_range_reaching_outside_grid(self) -> None:
        assert _eval("=SUM(A1:A20)", max_rows=10, max_cols=1) == _err(ErrorKind.ref_missing)

    def test_error_literal(self) -> None:
        assert _eval("=#DIV/0!") == _err(ErrorKind.divide_by_zero)
        assert _eval("=1 + #REF!") == _err(ErrorKind.ref_missing)
        assert _eval("=SUM(A1, #REF!)", {"A1": 1}) == _err(ErrorKind.ref_missing)

    def test_error_literal_caught(self) -> None:
        assert _eval("=IFERROR(#REF!, 1)") == 1
        assert _eval("=ISERROR(#NAME?)") is True


class TestLazyFunctions:
    def test_if_skips_untaken_branch(self) -> None:
        assert _eval("=IF(TRUE, 1, 1/0)") == 1
        assert _eval("=IF(FALSE, 1/0, 2)") == 2

    def test_if_without_else(self) -> None:
        assert _eval("=IF(FALSE, 1)") is False

    def test_if_condition_must_be_logical(self) -> None:
        assert _eval('=IF("x", 1, 2)') == _err(ErrorKind.type_mismatch)

    def test_iferror(self) -> None:
        assert _eval('=IFERROR(1/0, "fallback")') == "fallback"
        assert _eval('=IFERROR(5, "fallback")') == 5

    def test_iserror(self) -> None:
        assert _eval("=ISERROR(A1)", {"A1": _err(ErrorKind.cycle)}) is True
        assert _eval("=ISERROR(A1)", {"A1": 1}) is False


class TestCheckFunctions:
    def test_known_functions_pass(self) -> None:
        check_functions(parse_formula("=SUM(A1:A3) + IF(TRUE, ROUND(1.5), 0)"))

    def test_unknown_function(self) -> None:
        with pytest.raises(FormulaFunctionError, match="NOPE"):
            check_functions(parse_formula("=1 + NOPE(2)"))

    def test_nested_arity(self) -> None:
        with pytest.raises(FormulaFunctionError, match="argument"):
            check_functions(parse_formula("=SUM(MOD(1))"))
