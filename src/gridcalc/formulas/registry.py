"""Central registry for built-in formula functions.

Each function is registered with an arity range and a calling convention:

- ``scalar``: receives evaluated argument values plus the evaluation
  environment (grid bounds, display precision); a range argument is an
  ``InvalidRange`` error.
- ``range``: like ``scalar``, but a range argument arrives as a list of the
  contained values (row-major, empties as ``None``).
- ``lazy``: receives the unevaluated argument nodes plus the evaluation
  environment, and decides what to evaluate.
"""

from __future__ import annotations

from typing import Any, Callable, NamedTuple

SCALAR = "scalar"
RANGE = "range"
LAZY = "lazy"


class FunctionSpec(NamedTuple):
    name: str
    impl: Callable[..., Any]
    min_args: int
    max_args: int | None  # None means unbounded
    kind: str

    def accepts(self, n_args: int) -> bool:
        if n_args < self.min_args:
            return False
        return self.max_args is None or n_args <= self.max_args


_FUNCTIONS: dict[str, FunctionSpec] = {}


def register(name: str, min_args: int = 1, max_args: int | None = 1, kind: str = SCALAR) -> Callable:
    """Decorator that registers a formula function by name.

    Args:
        name: The upper-case name used in formulas.
        min_args: Fewest arguments accepted.
        max_args: Most arguments accepted, ``None`` for variadic.
        kind: One of ``scalar``, ``range`` or ``lazy``.

    Returns:
        The original function, unmodified.
    """

    def decorator(fn: Callable) -> Callable:
        _FUNCTIONS[name] = FunctionSpec(name, fn, min_args, max_args, kind)
        return fn

    return decorator


def get_function(name: str) -> FunctionSpec | None:
    """Look up a registered function, or ``None`` if the name is unknown."""
    return _FUNCTIONS.get(name.upper())


def function_names() -> list[str]:
    """Sorted names of every registered function."""
    return sorted(_FUNCTIONS)
