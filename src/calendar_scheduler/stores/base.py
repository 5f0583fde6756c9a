"""Shared JSON record-file handling for the stores."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonRecordFile:
    """A JSON file holding one list of per-user records under ``key``.

    Every mutation reads the whole file, patches it in memory and rewrites
    it. A lock serializes those cycles within this process only; separate
    processes writing the same file can still lose updates.
    """

    def __init__(self, path: str | Path, key: str):
        self.path = Path(path)
        self.key = key
        self._lock = threading.Lock()

    def _ensure_file(self) -> None:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write({self.key: []})

    def _read(self) -> dict[str, Any]:
        self._ensure_file()
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable record file {self.path}: {e}")
            return {self.key: []}

        if not isinstance(data, dict) or not isinstance(data.get(self.key), list):
            return {self.key: []}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def records(self) -> list[dict[str, Any]]:
        """Return a snapshot of all records."""
        with self._lock:
            return list(self._read()[self.key])

    def find(self, user_id: str) -> dict[str, Any] | None:
        for record in self.records():
            if record.get("user_id") == user_id:
                return record
        return None

    @contextmanager
    def _transaction(self) -> Iterator[list[dict[str, Any]]]:
        with self._lock:
            data = self._read()
            yield data[self.key]
            self._write(data)

    def upsert(self, user_id: str, update: Callable[[dict[str, Any]], None]) -> None:
        """Apply ``update`` to the user's record, appending a new one if absent."""
        with self._transaction() as records:
            for record in records:
                if record.get("user_id") == user_id:
                    update(record)
                    return
            record = {"user_id": user_id}
            update(record)
            records.append(record)

    def remove(self, user_id: str) -> bool:
        """Remove the user's record. Returns True if one existed."""
        with self._transaction() as records:
            before = len(records)
            records[:] = [r for r in records if r.get("user_id") != user_id]
            return len(records) != before
