"""Incremental export: append one serialized record per line.

The file is opened, appended to, and closed on every call so other
processes can read completed lines at any time. Appends to the same path
are serialized process-wide so concurrent streams never interleave
partial lines.
"""

import os
import threading
from pathlib import Path

from rtbackup.domain import ExportTarget, Record

_registry_lock = threading.Lock()
_file_locks: dict[str, threading.Lock] = {}


def file_lock(path: Path) -> threading.Lock:
    """Return the process-wide write lock for a path."""
    key = os.path.normcase(os.path.abspath(path))
    with _registry_lock:
        lock = _file_locks.get(key)
        if lock is None:
            lock = _file_locks[key] = threading.Lock()
        return lock


class IncrementalExporter:
    """Appends records to one export file."""

    def __init__(self, target: ExportTarget | Path, *, encoding: str = "utf-8"):
        self.path = target.path if isinstance(target, ExportTarget) else Path(target)
        self.encoding = encoding
        self._lock = file_lock(self.path)

    def export(self, record: Record) -> bool:
        """Serialize a record and append it.

        Returns False (and touches nothing) when the record serializes to
        an empty or whitespace-only line. I/O errors propagate.
        """
        return self.export_line(record.to_csv_line())

    def export_line(self, line: str | None) -> bool:
        if not line or not line.strip():
            return False
        with self._lock:
            with self.path.open("a", encoding=self.encoding) as f:
                f.write(line + "\n")
        return True

    def __repr__(self) -> str:
        return f"IncrementalExporter({str(self.path)!r})"
