"""Cell addresses and A1-style conversion helpers."""

from __future__ import annotations

import re
from typing import Iterator, NamedTuple, Union

_ADDR_RE = re.compile(r"^\$?([A-Z]{1,3})\$?(\d+)$")


class CellAddress(NamedTuple):
    """A 0-based ``(row, col)`` grid position.

    Tuple ordering makes addresses sort row-major, which is the
    deterministic iteration order used throughout the engine.
    """

    row: int
    col: int

    def __str__(self) -> str:
        return make_addr(self)


AddressLike = Union[CellAddress, tuple, str]


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_addr(addr: str) -> CellAddress:
    """Parse ``'B3'`` (or ``'$B$3'``) into ``CellAddress(2, 1)``.

    Raises ValueError on bad address.
    """
    m = _ADDR_RE.match(addr.strip().upper())
    if not m:
        raise ValueError(f"Invalid cell address: {addr!r}")
    row = int(m.group(2)) - 1
    if row < 0:
        raise ValueError(f"Invalid cell address: {addr!r} (rows start at 1)")
    return CellAddress(row, col_letter_to_index(m.group(1)))


def make_addr(address: tuple[int, int]) -> str:
    """Build an A1-style address from a 0-based ``(row, col)`` pair."""
    row, col = address
    return f"{index_to_col_letter(col)}{row + 1}"


def to_address(value: AddressLike) -> CellAddress:
    """Normalise an address given as ``CellAddress``, tuple or A1 string.

    Raises:
        ValueError: For malformed text or negative components.
    """
    if isinstance(value, str):
        return parse_addr(value)
    try:
        row, col = value
    except (TypeError, ValueError):
        raise ValueError(f"Invalid cell address: {value!r}") from None
    if not isinstance(row, int) or not isinstance(col, int) or isinstance(row, bool) or isinstance(col, bool):
        raise ValueError(f"Invalid cell address: {value!r}")
    if row < 0 or col < 0:
        raise ValueError(f"Invalid cell address: {value!r} (negative component)")
    return CellAddress(row, col)


def normalize_rect(start: CellAddress, end: CellAddress) -> tuple[CellAddress, CellAddress]:
    """Return ``(top_left, bottom_right)`` for two opposite corners."""
    r0, r1 = sorted((start.row, end.row))
    c0, c1 = sorted((start.col, end.col))
    return CellAddress(r0, c0), CellAddress(r1, c1)


def expand_range(start: CellAddress, end: CellAddress) -> Iterator[CellAddress]:
    """Yield every address of the rectangle spanned by two corners (row-major)."""
    top_left, bottom_right = normalize_rect(start, end)
    for r in range(top_left.row, bottom_right.row + 1):
        for c in range(top_left.col, bottom_right.col + 1):
            yield CellAddress(r, c)


# ---------------------------------------------------------------------------
# Structural edits and navigation
# ---------------------------------------------------------------------------

AXES = ("row", "col")

# A1 references spell at most three column letters (A..ZZZ)
MAX_COLUMNS = 18_278


def shift_address(address: CellAddress, axis: str, index: int, count: int) -> CellAddress | None:
    """Where *address* ends up after rows or columns are inserted or deleted.

    Args:
        address: The position before the edit.
        axis: ``"row"`` or ``"col"``.
        index: 0-based row/column where the insertion or deletion starts.
        count: Positive for an insert before *index*, negative for a delete
            of ``-count`` rows/columns starting at *index*.

    Returns:
        The new address, or ``None`` if *address* was deleted.
    """
    if axis not in AXES:
        raise ValueError(f"axis must be 'row' or 'col', got {axis!r}")
    pos = address.row if axis == "row" else address.col
    if pos < index:
        return address
    if count < 0 and pos < index - count:
        return None
    if axis == "row":
        return CellAddress(address.row + count, address.col)
    return CellAddress(address.row, address.col + count)


def neighbor_above(address: CellAddress) -> CellAddress | None:
    if address.row == 0:
        return None
    return CellAddress(address.row - 1, address.col)


def neighbor_below(address: CellAddress, max_rows: int | None = None) -> CellAddress | None:
    if max_rows is not None and address.row + 1 >= max_rows:
        return None
    return CellAddress(address.row + 1, address.col)


def neighbor_left(address: CellAddress) -> CellAddress | None:
    if address.col == 0:
        return None
    return CellAddress(address.row, address.col - 1)


def neighbor_right(address: CellAddress, max_cols: int | None = None) -> CellAddress | None:
    if max_cols is not None and address.col + 1 >= max_cols:
        return None
    return CellAddress(address.row, address.col + 1)
