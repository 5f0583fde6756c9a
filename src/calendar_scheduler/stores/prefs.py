"""Working-hours preference storage."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from calendar_scheduler.stores.base import JsonRecordFile

DEFAULT_START = "09:00"
DEFAULT_END = "17:00"


@dataclass
class WorkingHours:
    """A user's working hours.

    ``days`` holds weekday identifiers as given (0-6 for Sun-Sat, or names
    such as "Monday"). ``start`` and ``end`` are "HH:MM" strings. Values are
    stored as given; nothing here checks them.
    """

    days: list[int | str] = field(default_factory=list)
    start: str = DEFAULT_START
    end: str = DEFAULT_END
    time_zone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkingHours:
        return cls(
            days=list(data.get("days", [])),
            start=data.get("start", DEFAULT_START),
            end=data.get("end", DEFAULT_END),
            time_zone=data.get("time_zone"),
        )


class PreferenceStore:
    """Per-user working-hours preferences in a JSON file.

    File layout::

        {"prefs": [{"user_id": "demo-user", "working_hours": {...}}]}
    """

    def __init__(self, path: str | Path):
        self._file = JsonRecordFile(path, "prefs")

    @property
    def path(self) -> Path:
        return self._file.path

    def set(self, user_id: str, hours: WorkingHours) -> None:
        """Store working hours, overwriting any previous value wholesale."""
        data = hours.to_dict()

        def update(record: dict) -> None:
            record["working_hours"] = data

        self._file.upsert(user_id, update)

    def get(self, user_id: str) -> WorkingHours | None:
        record = self._file.find(user_id)
        if not record or not record.get("working_hours"):
            return None
        return WorkingHours.from_dict(record["working_hours"])
