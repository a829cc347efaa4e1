"""gridcalc -- spreadsheet formula engine with incremental recalculation."""

from gridcalc.address import CellAddress, make_addr, parse_addr
from gridcalc.formulas.values import CellError, ErrorKind
from gridcalc.grid import Cell, CellState, Diagnostic, Grid

__version__ = "0.1.0"

__all__ = [
    "Cell",
    "CellAddress",
    "CellError",
    "CellState",
    "Diagnostic",
    "ErrorKind",
    "Grid",
    "__version__",
    "make_addr",
    "parse_addr",
]
