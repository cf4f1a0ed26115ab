from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone

from app.application.exceptions import CalendarUnavailable
from app.application.ports.calendar import CalendarPort
from app.domain.entities.slot import CalendarEvent


class MockCalendar(CalendarPort):
    def __init__(self) -> None:
        self._events: dict[str, CalendarEvent] = {}
        self._counter = 0
        self.available = True
        self.fail_on_create = False
        self._logger = logging.getLogger(__name__)

    def _next_id(self) -> str:
        self._counter += 1
        return f"mock_event_{self._counter}"

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events.values())

    def add_all_day_event(self, start_date: date, end_date: date, summary: str = "Closed") -> str:
        """Seed an all-day event; end_date is exclusive like the real provider's."""
        event_id = self._next_id()
        self._events[event_id] = CalendarEvent(
            id=event_id, summary=summary, start_date=start_date, end_date=end_date
        )
        return event_id

    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        if not self.available:
            raise CalendarUnavailable("mock calendar is offline")

        events: list[CalendarEvent] = []
        for event in self._events.values():
            if event.start is not None and event.end is not None:
                start, end = event.start, event.end
            else:
                # Rough UTC bounds are enough here; callers filter precisely
                start = datetime.combine(event.start_date, time(0), tzinfo=timezone.utc)
                end = datetime.combine(event.end_date or event.start_date, time(0), tzinfo=timezone.utc)
            if start < time_max and end > time_min:
                events.append(event)
        return events

    def create_event(
        self,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
    ) -> str:
        if not self.available or self.fail_on_create:
            raise CalendarUnavailable("mock calendar is offline")

        event_id = self._next_id()
        self._events[event_id] = CalendarEvent(id=event_id, summary=summary, start=start, end=end)
        self._logger.info(
            "Mock calendar event created",
            extra={
                "event_id": event_id,
                "reason": f"{start.isoformat()} -> {end.isoformat()} {summary}",
            },
        )
        return event_id

    def delete_event(self, event_id: str) -> bool:
        if event_id in self._events:
            del self._events[event_id]
            self._logger.info("Mock calendar event deleted", extra={"event_id": event_id})
            return True
        return False
