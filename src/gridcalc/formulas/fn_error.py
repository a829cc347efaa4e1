"""Error-handling formula functions: IFERROR, ISERROR, ISBLANK."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import CellErrorSignal
from gridcalc.formulas.registry import LAZY, register


@register("IFERROR", min_args=2, max_args=2, kind=LAZY)
def _fn_iferror(raw_args: list, env: Any) -> Any:
    """IFERROR(value, fallback) -- fallback when value evaluates to an error."""
    try:
        return env.eval(raw_args[0])
    except CellErrorSignal:
        return env.eval(raw_args[1])


@register("ISERROR", kind=LAZY)
def _fn_iserror(raw_args: list, env: Any) -> bool:
    """ISERROR(expr) -- TRUE if the expression evaluates to an error.

    This is a lazy function: it receives unevaluated AST nodes.
    """
    try:
        env.eval(raw_args[0])
        return False
    except CellErrorSignal:
        return True


@register("ISBLANK")
def _fn_isblank(args: list, env: Any) -> bool:
    """ISBLANK(ref) -- TRUE if the referenced cell is empty."""
    return args[0] is None
