from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.slot import CalendarEvent


class CalendarPort(ABC):
    @abstractmethod
    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        """List events overlapping [time_min, time_max). Raises CalendarUnavailable on provider failure."""
        raise NotImplementedError

    @abstractmethod
    def create_event(
        self,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
    ) -> str:
        """Create calendar event from timezone-aware instants. Returns event_id."""
        raise NotImplementedError

    @abstractmethod
    def delete_event(self, event_id: str) -> bool:
        """Delete calendar event. Returns True if successful."""
        raise NotImplementedError
