"""Excel-like formula parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_formula, render_formula, evaluate
"""

from gridcalc.formulas.errors import (
    CellErrorSignal,
    CycleError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
)
from gridcalc.formulas.evaluator import check_functions, evaluate
from gridcalc.formulas.parser import is_formula, parse_formula, render_formula
from gridcalc.formulas.rewrite import rewrite_formula_refs, shift_refs
from gridcalc.formulas.values import CellError, CellValue, ErrorKind

__all__ = [
    "CellError",
    "CellErrorSignal",
    "CellValue",
    "CycleError",
    "ErrorKind",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "check_functions",
    "evaluate",
    "is_formula",
    "parse_formula",
    "render_formula",
    "rewrite_formula_refs",
    "shift_refs",
]
