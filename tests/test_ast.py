"""Tests for expression-tree traversal and reference extraction."""

from __future__ import annotations

from gridcalc.address import CellAddress, parse_addr
from gridcalc.formulas import parse_formula
from gridcalc.formulas.ast import CellRef, Literal, RangeRef, children, iter_refs, referenced_addresses


def _addrs(*names: str) -> set[CellAddress]:
    return {parse_addr(n) for n in names}


class TestIterRefs:
    def test_left_to_right_with_duplicates(self) -> None:
        refs = list(iter_refs(parse_formula("=B1 + A1 * B1")))
        assert refs == [
            CellRef(CellAddress(0, 1)),
            CellRef(CellAddress(0, 0)),
            CellRef(CellAddress(0, 1)),
        ]

    def test_ranges_not_expanded(self) -> None:
        refs = list(iter_refs(parse_formula("=SUM(A1:A3, C1)")))
        assert refs == [
            RangeRef(CellAddress(0, 0), CellAddress(2, 0)),
            CellRef(CellAddress(0, 2)),
        ]

    def test_no_refs(self) -> None:
        assert list(iter_refs(parse_formula('=1 + LEN("A1")'))) == []


class TestReferencedAddresses:
    def test_range_expanded(self) -> None:
        assert referenced_addresses(parse_formula("=SUM(A1:B2)")) == _addrs("A1", "A2", "B1", "B2")

    def test_reversed_corners(self) -> None:
        assert referenced_addresses(parse_formula("=SUM(B2:A1)")) == _addrs("A1", "A2", "B1", "B2")

    def test_duplicates_collapse(self) -> None:
        assert referenced_addresses(parse_formula("=A1 + A1 + SUM(A1:A2)")) == _addrs("A1", "A2")

    def test_out_of_bounds_dropped(self) -> None:
        tree = parse_formula("=A1 + C1 + A5")
        assert referenced_addresses(tree, max_rows=3, max_cols=2) == _addrs("A1")

    def test_range_clipped_to_bounds(self) -> None:
        tree = parse_formula("=SUM(A1:Z100)")
        assert referenced_addresses(tree, max_rows=2, max_cols=2) == _addrs("A1", "A2", "B1", "B2")

    def test_range_entirely_outside(self) -> None:
        tree = parse_formula("=SUM(C3:D4)")
        assert referenced_addresses(tree, max_rows=2, max_cols=2) == set()


class TestChildren:
    def test_leaf_has_no_children(self) -> None:
        assert children(Literal(1)) == ()

    def test_binary_children_in_order(self) -> None:
        tree = parse_formula("=1 - 2")
        assert children(tree) == (Literal(1), Literal(2))

    def test_call_children_are_args(self) -> None:
        tree = parse_formula("=MAX(1, 2, 3)")
        assert children(tree) == (Literal(1), Literal(2), Literal(3))
