"""Error types for formula parsing, evaluation and dependency tracking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from gridcalc.formulas.values import ErrorKind


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: 1-based column where the error was detected.
        expected: Sorted names of the token classes that would have been accepted.
    """

    def __init__(
        self,
        message: str,
        position: int | None = None,
        expected: Iterable[str] | None = None,
    ) -> None:
        self.position = position
        self.expected = sorted(expected or [])
        self.detail = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        if self.expected:
            full += f"; expected one of: {', '.join(self.expected)}"
        super().__init__(full)


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class CellErrorSignal(FormulaError):
    """Raised inside the evaluator to unwind with a cell error value.

    The evaluator converts it back into a ``CellError`` before returning,
    so it never escapes ``evaluate()``.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or kind.value)


class CycleError(FormulaError):
    """Raised when a set of cells cannot be ordered because it is cyclic.

    Attributes:
        nodes: The addresses left unordered (all on or behind a cycle).
    """

    def __init__(self, nodes: Iterable) -> None:
        self.nodes = sorted(nodes)
        parts = [str(n) for n in self.nodes]
        super().__init__(f"Circular cell reference among: {', '.join(parts)}")
