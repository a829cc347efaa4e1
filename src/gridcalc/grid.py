"""Grid of cells with dependency-driven incremental recalculation.

Every edit goes through ``Grid``: the edited cell is parsed, its outgoing
dependency edges are replaced (after a cycle check), and then the cell plus
everything that transitively reads it is re-evaluated in dependency order.
Reads (``get_value``, ``get_display_text``) only return cached state.

Usage::

    grid = Grid()
    grid.set_cell("A1", "2")
    grid.set_cell("B1", "=A1 * 10")
    grid.get_value("B1")          # 20
    grid.set_cell("A1", "3")      # recomputes A1 then B1
    grid.get_display_text("B1")   # "30"
    grid.insert_rows(0)           # A1 -> A2; B2 now reads "=A2 * 10"
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from gridcalc.address import (
    AddressLike,
    CellAddress,
    MAX_COLUMNS,
    make_addr,
    neighbor_above,
    neighbor_below,
    neighbor_left,
    neighbor_right,
    normalize_rect,
    shift_address,
    to_address,
)
from gridcalc.config import DEFAULT_CONFIG, validate_config
from gridcalc.formulas.ast import Expr, RangeRef, iter_refs, referenced_addresses
from gridcalc.formulas.errors import CycleError, FormulaParseError
from gridcalc.formulas.evaluator import evaluate
from gridcalc.formulas.parser import is_formula, parse_formula
from gridcalc.formulas.rewrite import rewrite_formula_refs
from gridcalc.formulas.values import CellError, CellValue, ErrorKind, format_value, parse_literal
from gridcalc.graph import DependencyGraph
from gridcalc.logging.events import (
    FORMULA_CYCLE,
    FORMULA_SYNTAX,
    RANGE_TOO_LARGE,
    EventType,
    emit_error,
    emit_info,
    emit_warning,
)


class CellState(str, Enum):
    clean = "clean"
    dirty = "dirty"
    evaluating = "evaluating"
    errored = "errored"


@dataclass
class Cell:
    """One occupied grid position.

    ``rejected`` pins an edit-time error (syntax, cycle, oversized range):
    the cell keeps showing that error until its content is edited again.
    """

    raw_content: str
    ast: Expr | None = None
    cached_value: CellValue = None
    state: CellState = CellState.dirty
    rejected: ErrorKind | None = None

    @property
    def dirty(self) -> bool:
        return self.state is CellState.dirty

    @property
    def is_formula(self) -> bool:
        return is_formula(self.raw_content)


@dataclass(frozen=True)
class Diagnostic:
    """Why an edit was not accepted as entered."""

    address: CellAddress
    kind: ErrorKind
    message: str
    position: int | None = None
    path: tuple[CellAddress, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        text = f"{make_addr(self.address)}: {self.kind.value}: {self.message}"
        if self.path:
            text += f" ({' -> '.join(make_addr(a) for a in self.path)})"
        return text


class Grid:
    """Owns all cells and their dependency graph.

    Parameters
    ----------
    config : dict[str, Any] | None
        Engine settings merged over ``DEFAULT_CONFIG`` (see
        ``gridcalc.config``): grid bounds, largest range, display precision.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = validate_config({**DEFAULT_CONFIG, **(config or {})})
        self._max_rows: int = self.config["max_rows"]
        self._max_cols: int = self.config["max_cols"]
        self._precision: int = self.config["display_precision"]
        self._cells: dict[CellAddress, Cell] = {}
        self._graph = DependencyGraph()
        self._last_recalculated: tuple[CellAddress, ...] = ()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, address: object) -> bool:
        try:
            return to_address(address) in self._cells  # type: ignore[arg-type]
        except ValueError:
            return False

    @property
    def graph(self) -> DependencyGraph:
        """The dependency graph (read it, do not mutate it)."""
        return self._graph

    @property
    def last_recalculated(self) -> tuple[CellAddress, ...]:
        """Cells evaluated by the most recent pass, in evaluation order."""
        return self._last_recalculated

    def addresses(self) -> list[CellAddress]:
        """Occupied addresses, ascending."""
        return sorted(self._cells)

    def get_cell(self, address: AddressLike) -> Cell | None:
        return self._cells.get(self._address(address))

    def get_raw(self, address: AddressLike) -> str:
        """Content as entered, ``""`` for an empty cell."""
        cell = self._cells.get(self._address(address))
        return cell.raw_content if cell is not None else ""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, address: AddressLike) -> CellValue:
        """Cached value of a cell, ``None`` if empty.  Never recomputes."""
        cell = self._cells.get(self._address(address))
        return cell.cached_value if cell is not None else None

    def get_display_text(self, address: AddressLike) -> str:
        """Literal text for value cells, the rendered result for formulas."""
        cell = self._cells.get(self._address(address))
        if cell is None:
            return ""
        if not cell.is_formula:
            return cell.raw_content
        return format_value(cell.cached_value, self._precision)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_cell(self, address: AddressLike, raw_content: str) -> Diagnostic | None:
        """Set a cell's content and recompute everything that depends on it.

        Returns:
            ``None`` on success, else a ``Diagnostic``.  On a cycle the
            edit's edges are not committed, the cell shows ``Error(Cycle)``
            and no other cell is recomputed.
        """
        if not isinstance(raw_content, str):
            raise TypeError(f"Cell content must be str, got {type(raw_content).__name__}")
        addr = self._address(address)
        if not raw_content.strip():
            return self.clear_cell(addr)

        diagnostic = self._stage(addr, raw_content)
        if diagnostic is not None and diagnostic.kind is ErrorKind.cycle:
            self._last_recalculated = ()
            return diagnostic

        self._recalculate({addr} | self._graph.dependents_of(addr), trigger=addr)
        emit_info(
            EventType.cell_set,
            f"Set {make_addr(addr)}",
            {"address": make_addr(addr), "formula": self._cells[addr].is_formula},
        )
        return diagnostic

    def clear_cell(self, address: AddressLike) -> Diagnostic | None:
        """Empty a cell; cells reading it recompute and see an empty value."""
        addr = self._address(address)
        cell = self._cells.pop(addr, None)
        self._graph.remove(addr)
        if cell is None:
            self._last_recalculated = ()
            return None

        self._recalculate(self._graph.dependents_of(addr), trigger=addr)
        emit_info(EventType.cell_cleared, f"Cleared {make_addr(addr)}", {"address": make_addr(addr)})
        return None

    def load(self, items: Iterable[tuple[AddressLike, str]]) -> list[Diagnostic]:
        """Apply many edits, then run a single recalculation pass.

        Edits are applied in ascending address order (for a repeated
        address the last one wins); empty text clears the cell.

        Returns:
            Diagnostics for the edits that were not accepted as entered.
        """
        staged: dict[CellAddress, str] = {}
        for address, text in items:
            staged[self._address(address)] = text

        diagnostics: list[Diagnostic] = []
        touched: set[CellAddress] = set()
        for addr in sorted(staged):
            text = staged[addr]
            if not text.strip():
                if self._cells.pop(addr, None) is not None:
                    self._graph.remove(addr)
                    touched.add(addr)
                continue
            diagnostic = self._stage(addr, text)
            touched.add(addr)
            if diagnostic is not None:
                diagnostics.append(diagnostic)

        dirty: set[CellAddress] = set(touched)
        for addr in touched:
            dirty |= self._graph.dependents_of(addr)
        self._recalculate(dirty)

        emit_info(
            EventType.bulk_load_completed,
            f"Loaded {len(staged)} cell(s)",
            {"cells": len(staged), "rejected": len(diagnostics)},
        )
        return diagnostics

    def dump(self) -> list[tuple[CellAddress, str]]:
        """Every occupied cell as ``(address, raw_content)``, ascending."""
        return [(addr, self._cells[addr].raw_content) for addr in sorted(self._cells)]

    def recalculate_all(self) -> None:
        """Re-evaluate every cell."""
        self._recalculate(set(self._cells))

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def max_rows(self) -> int:
        return self._max_rows

    @property
    def max_cols(self) -> int:
        return self._max_cols

    def neighbor(self, address: AddressLike, direction: str) -> CellAddress | None:
        """The adjacent address in *direction* (up/down/left/right), ``None`` at an edge."""
        addr = self._address(address)
        if direction == "up":
            return neighbor_above(addr)
        if direction == "down":
            return neighbor_below(addr, self._max_rows)
        if direction == "left":
            return neighbor_left(addr)
        if direction == "right":
            return neighbor_right(addr, self._max_cols)
        raise ValueError(f"direction must be up, down, left or right, got {direction!r}")

    def insert_rows(self, row_idx: int, count: int = 1) -> list[Diagnostic]:
        """Insert empty rows before the given 0-based row index.

        Cells at or below *row_idx* move down, formulas follow them, and
        the grid grows by *count* rows.

        Returns:
            Diagnostics from re-entering the moved cells.
        """
        if row_idx < 0 or row_idx > self._max_rows:
            raise ValueError(f"row_idx {row_idx} out of range [0, {self._max_rows}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        return self._shift("row", row_idx, count)

    def delete_rows(self, row_idx: int, count: int = 1) -> list[Diagnostic]:
        """Delete rows starting at the given 0-based row index.

        Cells in the deleted rows are dropped, references to them become
        ``#REF!`` and the grid shrinks (never below one row).
        """
        if row_idx < 0 or row_idx >= self._max_rows:
            raise ValueError(f"row_idx {row_idx} out of range [0, {self._max_rows})")
        if count < 1:
            raise ValueError("count must be >= 1")
        count = min(count, self._max_rows - row_idx)
        return self._shift("row", row_idx, -count)

    def insert_cols(self, col_idx: int, count: int = 1) -> list[Diagnostic]:
        """Insert empty columns before the given 0-based column index."""
        if col_idx < 0 or col_idx > self._max_cols:
            raise ValueError(f"col_idx {col_idx} out of range [0, {self._max_cols}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        if self._max_cols + count > MAX_COLUMNS:
            raise ValueError(f"Grid cannot grow past {MAX_COLUMNS} columns")
        return self._shift("col", col_idx, count)

    def delete_cols(self, col_idx: int, count: int = 1) -> list[Diagnostic]:
        """Delete columns starting at the given 0-based column index."""
        if col_idx < 0 or col_idx >= self._max_cols:
            raise ValueError(f"col_idx {col_idx} out of range [0, {self._max_cols})")
        if count < 1:
            raise ValueError("count must be >= 1")
        count = min(count, self._max_cols - col_idx)
        return self._shift("col", col_idx, -count)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _address(self, address: AddressLike) -> CellAddress:
        addr = to_address(address)
        if addr.row >= self._max_rows or addr.col >= self._max_cols:
            raise ValueError(
                f"Cell address {make_addr(addr)} is outside the grid "
                f"({self._max_rows} rows x {self._max_cols} columns)"
            )
        return addr

    def _shift(self, axis: str, index: int, count: int) -> list[Diagnostic]:
        """Move cells for a row/column edit, rewrite formulas, rebuild and recompute."""
        contents: list[tuple[CellAddress, str]] = []
        for addr, cell in self._cells.items():
            moved = shift_address(addr, axis, index, count)
            if moved is None:
                continue
            contents.append((moved, rewrite_formula_refs(cell.raw_content, axis, index, count)))

        if axis == "row":
            self._max_rows = max(1, self._max_rows + count)
            self.config["max_rows"] = self._max_rows
        else:
            self._max_cols = max(1, self._max_cols + count)
            self.config["max_cols"] = self._max_cols

        self._cells = {}
        self._graph = DependencyGraph()
        diagnostics = self.load(contents)
        emit_info(
            EventType.structure_changed,
            f"{'Inserted' if count > 0 else 'Deleted'} {abs(count)} {axis}(s) at {index}",
            {"axis": axis, "index": index, "count": count, "cells": len(contents)},
        )
        return diagnostics

    def _oversized_range(self, ast: Expr) -> RangeRef | None:
        limit = self.config["max_range_cells"]
        for ref in iter_refs(ast):
            if isinstance(ref, RangeRef):
                top_left, bottom_right = normalize_rect(ref.start, ref.end)
                area = (bottom_right.row - top_left.row + 1) * (bottom_right.col - top_left.col + 1)
                if area > limit:
                    return ref
        return None

    def _reject(self, addr: CellAddress, raw: str, kind: ErrorKind) -> None:
        """Store content whose formula was not accepted; it reads nothing."""
        self._graph.remove(addr)
        self._cells[addr] = Cell(raw, rejected=kind)

    def _stage(self, addr: CellAddress, raw: str) -> Diagnostic | None:
        """Replace a cell's content and edges without evaluating anything."""
        if not is_formula(raw):
            self._graph.remove(addr)
            self._cells[addr] = Cell(raw)
            return None

        try:
            ast = parse_formula(raw)
        except FormulaParseError as exc:
            self._reject(addr, raw, ErrorKind.syntax)
            emit_warning(
                EventType.formula_syntax_error,
                exc.detail,
                {"address": make_addr(addr), "position": exc.position, "expected": exc.expected},
                error_code=FORMULA_SYNTAX,
            )
            return Diagnostic(addr, ErrorKind.syntax, exc.detail, position=exc.position)

        oversized = self._oversized_range(ast)
        if oversized is not None:
            self._reject(addr, raw, ErrorKind.invalid_range)
            message = (
                f"Range {make_addr(oversized.start)}:{make_addr(oversized.end)} spans more than "
                f"{self.config['max_range_cells']} cells"
            )
            emit_warning(
                EventType.range_rejected,
                message,
                {"address": make_addr(addr)},
                error_code=RANGE_TOO_LARGE,
            )
            return Diagnostic(addr, ErrorKind.invalid_range, message)

        refs = referenced_addresses(ast, self._max_rows, self._max_cols)
        path = self._graph.find_cycle_path(addr, refs)
        if path is not None:
            # prior edges stay as they were; only the cell's content changes
            self._cells[addr] = Cell(
                raw,
                cached_value=CellError(ErrorKind.cycle),
                state=CellState.errored,
                rejected=ErrorKind.cycle,
            )
            message = "Formula would create a circular reference"
            emit_warning(
                EventType.cycle_rejected,
                message,
                {"address": make_addr(addr), "path": [make_addr(a) for a in path]},
                error_code=FORMULA_CYCLE,
            )
            return Diagnostic(addr, ErrorKind.cycle, message, path=tuple(path))

        self._graph.set_edges(addr, refs)
        self._cells[addr] = Cell(raw, ast=ast)
        return None

    def _lookup(self, address: CellAddress) -> CellValue:
        cell = self._cells.get(address)
        if cell is None:
            return None
        if cell.state is CellState.evaluating:
            return CellError(ErrorKind.cycle)
        return cell.cached_value

    def _compute(self, cell: Cell) -> CellValue:
        if cell.rejected is not None:
            return CellError(cell.rejected)
        if cell.ast is None:
            return parse_literal(cell.raw_content)
        return evaluate(
            cell.ast,
            self._lookup,
            max_rows=self._max_rows,
            max_cols=self._max_cols,
            precision=self._precision,
        )

    def _recalculate(self, dirty: set[CellAddress], trigger: CellAddress | None = None) -> None:
        """Evaluate *dirty* cells, dependencies first."""
        started = time.perf_counter()
        dirty = {addr for addr in dirty if addr in self._cells}
        for addr in dirty:
            self._cells[addr].state = CellState.dirty

        try:
            order = self._graph.topological_order(dirty)
        except CycleError as exc:
            # unreachable while cycle rejection holds; contain it if it ever fires
            emit_error(
                EventType.recalc_completed,
                str(exc),
                {"cells": [make_addr(a) for a in exc.nodes]},
                error_code=FORMULA_CYCLE,
            )
            for addr in exc.nodes:
                cell = self._cells[addr]
                cell.cached_value = CellError(ErrorKind.cycle)
                cell.state = CellState.errored
            order = self._graph.topological_order(dirty - set(exc.nodes))

        errors = 0
        for addr in order:
            cell = self._cells[addr]
            cell.state = CellState.evaluating
            value = self._compute(cell)
            cell.cached_value = value
            if isinstance(value, CellError):
                cell.state = CellState.errored
                errors += 1
            else:
                cell.state = CellState.clean

        self._last_recalculated = tuple(order)
        emit_info(
            EventType.recalc_completed,
            f"Recalculated {len(order)} cell(s)",
            {
                "trigger": make_addr(trigger) if trigger is not None else None,
                "cells": len(order),
                "errors": errors,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
            },
        )
