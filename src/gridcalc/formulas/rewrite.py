"""Formula reference rewriting for row/column insertion and deletion.

References at or past the edit point move with the cells they name.  A
reference into deleted rows/columns becomes the ``#REF!`` error constant;
a range keeps whatever part of it survives the deletion and becomes
``#REF!`` only when all of it is gone.
"""

from __future__ import annotations

from gridcalc.address import CellAddress, normalize_rect, shift_address
from gridcalc.formulas.ast import BinaryOp, Call, CellRef, Expr, Literal, RangeRef, UnaryOp
from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.parser import is_formula, parse_formula, render_formula
from gridcalc.formulas.values import CellError, ErrorKind

_REF_ERROR = Literal(CellError(ErrorKind.ref_missing))


def _with_pos(address: CellAddress, axis: str, pos: int) -> CellAddress:
    if axis == "row":
        return CellAddress(pos, address.col)
    return CellAddress(address.row, pos)


def _shift_range(node: RangeRef, axis: str, index: int, count: int) -> Expr:
    top_left, bottom_right = normalize_rect(node.start, node.end)
    if count > 0:
        new_tl = shift_address(top_left, axis, index, count)
        new_br = shift_address(bottom_right, axis, index, count)
    else:
        lo = top_left.row if axis == "row" else top_left.col
        hi = bottom_right.row if axis == "row" else bottom_right.col
        end = index - count  # first position after the deleted span
        if index <= lo and hi < end:
            return _REF_ERROR
        new_lo = lo if lo < index else (index if lo < end else lo + count)
        new_hi = hi if hi < index else (index - 1 if hi < end else hi + count)
        new_tl = _with_pos(top_left, axis, new_lo)
        new_br = _with_pos(bottom_right, axis, new_hi)

    if (new_tl, new_br) == (top_left, bottom_right):
        return node
    return RangeRef(new_tl, new_br)


def shift_refs(expr: Expr, axis: str, index: int, count: int) -> Expr:
    """Return *expr* with every reference moved for a row/column edit.

    ``axis``, ``index`` and ``count`` follow ``gridcalc.address.shift_address``.
    Unchanged subtrees are returned as-is.
    """
    if isinstance(expr, Literal):
        return expr
    if isinstance(expr, CellRef):
        moved = shift_address(expr.address, axis, index, count)
        if moved is None:
            return _REF_ERROR
        return expr if moved == expr.address else CellRef(moved)
    if isinstance(expr, RangeRef):
        return _shift_range(expr, axis, index, count)
    if isinstance(expr, UnaryOp):
        operand = shift_refs(expr.operand, axis, index, count)
        return expr if operand is expr.operand else UnaryOp(expr.op, operand)
    if isinstance(expr, BinaryOp):
        left = shift_refs(expr.left, axis, index, count)
        right = shift_refs(expr.right, axis, index, count)
        if left is expr.left and right is expr.right:
            return expr
        return BinaryOp(expr.op, left, right)
    if isinstance(expr, Call):
        args = tuple(shift_refs(arg, axis, index, count) for arg in expr.args)
        if all(new is old for new, old in zip(args, expr.args)):
            return expr
        return Call(expr.name, args)
    raise TypeError(f"Unknown node type: {type(expr).__name__}")


def rewrite_formula_refs(formula: str, axis: str, index: int, count: int) -> str:
    """Rewrite the references in formula text after a row/column edit.

    Args:
        formula: Cell content; anything that is not a formula comes back as is.
        axis: ``"row"`` or ``"col"``.
        index: 0-based index where the insertion/deletion starts.
        count: Positive for insert, negative for delete.

    Returns:
        The formula in canonical form if a reference moved, else the
        original text.  Text that does not parse is returned unchanged.
    """
    if not is_formula(formula):
        return formula
    try:
        tree = parse_formula(formula)
    except FormulaParseError:
        return formula
    shifted = shift_refs(tree, axis, index, count)
    if shifted is tree:
        return formula
    return render_formula(shifted)
