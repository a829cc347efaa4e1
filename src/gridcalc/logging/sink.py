"""NDJSON event sink.

One JSON object per line in ``<log_dir>/events.ndjson``, keys sorted so two
runs of the same edits produce comparable logs.  Appends hold an exclusive
``fcntl.flock`` and reads a shared one, so several processes (a CLI run next
to a long-lived host) can share a log directory.  Without ``fcntl``
(Windows) the file is used unlocked.
"""

from __future__ import annotations

import json
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from gridcalc.logging.events import GridEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False
    print("[gridcalc] fcntl not available; log file locking disabled", file=sys.stderr)

EVENTS_FILENAME = "events.ndjson"


@contextmanager
def _locked(handle: IO[str], exclusive: bool) -> Iterator[IO[str]]:
    if not _HAS_FCNTL:
        yield handle
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield handle
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class EventSink:
    """Appends ``GridEvent`` records to a log directory and reads them back."""

    def __init__(self, log_dir: Path, *, fsync: bool = False) -> None:
        self.log_dir = Path(log_dir)
        self.fsync = fsync
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.log_dir / EVENTS_FILENAME

    def write(self, event: GridEvent) -> None:
        record = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        with open(self.path, "a", encoding="utf-8") as handle, _locked(handle, exclusive=True):
            handle.write(record + "\n")
            handle.flush()
            if self.fsync:
                os.fsync(handle.fileno())

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Newest first, at most *limit*, optionally filtered by level and type."""
        matches = [
            record
            for record in self._records()
            if (level is None or record.get("level") == level)
            and (event_type is None or record.get("event_type") == event_type)
        ]
        matches.reverse()
        return matches[:limit]

    def _records(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as handle, _locked(handle, exclusive=False):
            lines = handle.read().splitlines()

        records: list[dict[str, Any]] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                # torn write from a process killed mid-append
                continue
        return records
