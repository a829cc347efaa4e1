"""Text formula functions: CONCAT, LEN, UPPER, LOWER, TRIM.

Numbers become text with the grid's display precision, the same way ``&``
converts them.
"""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.registry import RANGE, register
from gridcalc.formulas.values import to_text


@register("CONCAT", min_args=1, max_args=None, kind=RANGE)
def _fn_concat(args: list, env: Any) -> str:
    """CONCAT(text, ...) -- join arguments; ranges contribute every cell."""
    parts: list[str] = []
    for arg in args:
        if isinstance(arg, list):
            parts.extend(to_text(v, env.precision) for v in arg)
        else:
            parts.append(to_text(arg, env.precision))
    return "".join(parts)


@register("LEN")
def _fn_len(args: list, env: Any) -> int:
    return len(to_text(args[0], env.precision))


@register("UPPER")
def _fn_upper(args: list, env: Any) -> str:
    return to_text(args[0], env.precision).upper()


@register("LOWER")
def _fn_lower(args: list, env: Any) -> str:
    return to_text(args[0], env.precision).lower()


@register("TRIM")
def _fn_trim(args: list, env: Any) -> str:
    """TRIM(text) -- strip ends and collapse inner runs of spaces."""
    return " ".join(to_text(args[0], env.precision).split())
