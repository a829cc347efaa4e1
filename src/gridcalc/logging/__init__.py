"""Structured NDJSON event log for grid edits and recalculation passes."""

from gridcalc.logging.events import (
    EventLevel,
    EventType,
    GridEvent,
    configure_from_config,
    configure_logging,
    emit,
    emit_error,
    emit_info,
    emit_warning,
)
from gridcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridEvent",
    "configure_from_config",
    "configure_logging",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
]
