"""Grid events: what happened to which cell, as structured records.

The engine reports edits, rejected formulas and recalculation passes
through ``emit_info`` / ``emit_warning`` / ``emit_error``.  Nothing is
written until a host calls ``configure_logging``; sink failures never reach
the caller.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from gridcalc.logging.sink import EventSink


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Edits
    cell_set = "cell_set"
    cell_cleared = "cell_cleared"

    # Structural edits
    structure_changed = "structure_changed"

    # Rejected edits
    formula_syntax_error = "formula_syntax_error"
    range_rejected = "range_rejected"
    cycle_rejected = "cycle_rejected"

    # Recalculation
    recalc_completed = "recalc_completed"
    bulk_load_completed = "bulk_load_completed"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

FORMULA_SYNTAX = "formula_syntax"
FORMULA_CYCLE = "formula_cycle"
RANGE_TOO_LARGE = "range_too_large"


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GridEvent(BaseModel):
    """One NDJSON record.  ``ts`` is UTC ISO-8601 with a ``Z`` suffix."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Set by ``configure_logging``; ``None`` means events are discarded.
_sink: EventSink | None = None


def configure_logging(log_dir: str | Path | None, *, fsync: bool = False) -> None:
    """Route events to ``<log_dir>/events.ndjson``; ``None`` discards them."""
    global _sink
    from gridcalc.logging.sink import EventSink

    _sink = None if log_dir is None else EventSink(Path(log_dir), fsync=fsync)


def configure_from_config(config: dict[str, Any]) -> None:
    """Apply ``logging_dir`` / ``logging_fsync`` from an engine config."""
    log_dir = config.get("logging_dir")
    if log_dir:
        configure_logging(log_dir, fsync=bool(config.get("logging_fsync", False)))


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """At most one stderr line per ``_STDERR_INTERVAL_SECS``."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[gridcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: GridEvent) -> None:
    """Hand *event* to the configured sink.

    **Never raises.**  A failing sink costs one stderr line per minute,
    not the edit that produced the event.
    """
    sink = _sink
    if sink is None:
        return
    try:
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
) -> None:
    try:
        event = GridEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    except Exception:
        _stderr_warning(f"invalid event: {traceback.format_exc()}")
        return
    emit(event)


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    _emit_at(EventLevel.info, event_type, message, context, None)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Rejected edits (syntax, cycle, oversized range) are logged here."""
    _emit_at(EventLevel.warning, event_type, message, context, error_code)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code)
