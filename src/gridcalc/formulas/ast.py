"""Expression tree produced by the parser.

The node set is closed: ``Expr`` is the union of the six dataclasses below
and every consumer (evaluator, renderer, reference extraction) dispatches
over exactly these kinds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

from gridcalc.address import CellAddress, expand_range, normalize_rect
from gridcalc.formulas.values import CellError

UNARY_OPS = ("-", "+", "%")
BINARY_OPS = ("=", "<>", "<", ">", "<=", ">=", "&", "+", "-", "*", "/", "^")


@dataclass(frozen=True)
class Literal:
    """A constant.  An error constant (``#REF!``) evaluates to its error."""

    value: int | float | str | bool | CellError


@dataclass(frozen=True)
class CellRef:
    address: CellAddress


@dataclass(frozen=True)
class RangeRef:
    start: CellAddress
    end: CellAddress

    def addresses(self) -> Iterator[CellAddress]:
        """Contained addresses, row-major."""
        return expand_range(self.start, self.end)


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expr


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Expr, ...] = ()


Expr = Union[Literal, CellRef, RangeRef, UnaryOp, BinaryOp, Call]


def children(node: Expr) -> tuple[Expr, ...]:
    """Direct sub-expressions of *node*, in source order."""
    if isinstance(node, (Literal, CellRef, RangeRef)):
        return ()
    if isinstance(node, UnaryOp):
        return (node.operand,)
    if isinstance(node, BinaryOp):
        return (node.left, node.right)
    if isinstance(node, Call):
        return node.args
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def iter_refs(expr: Expr) -> Iterator[CellRef | RangeRef]:
    """Yield every reference node, once per occurrence, left to right.

    Duplicates are preserved: ``=A1+A1`` yields two ``CellRef`` nodes.
    """
    stack: list[Expr] = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, (CellRef, RangeRef)):
            yield node
            continue
        stack.extend(reversed(children(node)))


def _in_bounds(address: CellAddress, max_rows: int | None, max_cols: int | None) -> bool:
    if max_rows is not None and address.row >= max_rows:
        return False
    if max_cols is not None and address.col >= max_cols:
        return False
    return True


def referenced_addresses(
    expr: Expr,
    max_rows: int | None = None,
    max_cols: int | None = None,
) -> set[CellAddress]:
    """All addresses *expr* reads, with ranges expanded one address each.

    Addresses outside ``max_rows`` x ``max_cols`` are left out: no cell can
    ever live there, so they never need a dependency edge.
    """
    found: set[CellAddress] = set()
    for ref in iter_refs(expr):
        if isinstance(ref, CellRef):
            if _in_bounds(ref.address, max_rows, max_cols):
                found.add(ref.address)
            continue
        top_left, bottom_right = normalize_rect(ref.start, ref.end)
        if not _in_bounds(top_left, max_rows, max_cols):
            continue
        row_end = bottom_right.row if max_rows is None else min(bottom_right.row, max_rows - 1)
        col_end = bottom_right.col if max_cols is None else min(bottom_right.col, max_cols - 1)
        found.update(expand_range(top_left, CellAddress(row_end, col_end)))
    return found
