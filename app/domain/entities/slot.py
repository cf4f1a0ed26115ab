from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    source_event_id: str | None = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Strict half-open test: touching at a boundary is not an overlap."""
        return start < self.end and end > self.start


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str | None = None
    # Timed events
    start: datetime | None = None
    end: datetime | None = None
    # All-day events; end_date is exclusive
    start_date: date | None = None
    end_date: date | None = None
    status: str | None = None

    @property
    def is_all_day(self) -> bool:
        return self.start is None and self.start_date is not None
