from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from app.application.use_cases.busy_intervals import BusyIntervalExtractor
from app.application.utils.date_parser import parse_time_of_day
from app.domain.entities.slot import BusyInterval, TimeSlot


@dataclass(frozen=True)
class StudioHours:
    opening_hour: int = 9
    standard_closing_hour: int = 21
    hard_closing_hour: int = 22
    slot_granularity_minutes: int = 60
    closed_weekdays: frozenset[int] = field(default_factory=lambda: frozenset({6}))
    same_day_margin_hours: int = 2


class AvailabilityCalculator:
    """Pure slot computation for one day; knows nothing about where busy intervals come from."""

    def __init__(self, hours: StudioHours, timezone: ZoneInfo) -> None:
        self._hours = hours
        self._timezone = timezone

    def compute(
        self,
        day: date,
        duration_hours: float,
        busy: Iterable[BusyInterval],
        now: datetime | None = None,
    ) -> list[TimeSlot]:
        if duration_hours <= 0:
            raise ValueError("Duration must be a positive number of hours")

        hours = self._hours
        busy = list(busy)

        # A slot may start after the standard closing hour only if it still ends by the hard close
        max_start_hour = hours.hard_closing_hour - duration_hours
        closing_hour = min(hours.standard_closing_hour, max_start_hour)

        opening_hour = hours.opening_hour
        if now is not None and now.astimezone(self._timezone).date() == day:
            local_now = now.astimezone(self._timezone)
            opening_hour = max(opening_hour, local_now.hour + hours.same_day_margin_hours)

        if opening_hour > closing_hour:
            return []

        midnight = datetime.combine(day, time(0, 0), tzinfo=self._timezone)
        hard_close = midnight + timedelta(hours=hours.hard_closing_hour)
        last_start = midnight + timedelta(hours=closing_hour)
        step = timedelta(minutes=hours.slot_granularity_minutes)
        length = timedelta(hours=duration_hours)

        slots: list[TimeSlot] = []
        slot_start = midnight + timedelta(hours=opening_hour)
        while slot_start <= last_start:
            slot_end = slot_start + length
            if slot_end <= hard_close and not any(b.overlaps(slot_start, slot_end) for b in busy):
                slots.append(TimeSlot(start=slot_start, end=slot_end))
            slot_start += step

        return slots


class AvailabilityService:
    def __init__(
        self,
        extractor: BusyIntervalExtractor,
        hours: StudioHours,
        timezone: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._extractor = extractor
        self._hours = hours
        self._timezone = timezone
        self._calculator = AvailabilityCalculator(hours, timezone)
        self._clock = clock or (lambda: datetime.now(timezone))
        self._logger = logging.getLogger(__name__)

    def available_slots(self, day: date, duration_hours: float) -> list[TimeSlot]:
        """
        Bookable slots for a local calendar day.
        An empty list is a normal answer (closed day, past day, fully booked).
        CalendarUnavailable propagates: an unknown calendar never reads as free.
        """
        if duration_hours <= 0:
            raise ValueError("Duration must be a positive number of hours")

        if day.weekday() in self._hours.closed_weekdays:
            self._logger.info("Studio closed on requested day", extra={"date": day.isoformat()})
            return []

        now = self._clock()
        if day < now.astimezone(self._timezone).date():
            return []

        busy = self._extractor.extract(day)
        slots = self._calculator.compute(day, duration_hours, busy, now=now)
        self._logger.info(
            "Availability computed",
            extra={"date": day.isoformat(), "reason": f"{len(slots)} slots for {duration_hours}h"},
        )
        return slots

    def is_slot_available(self, day: date, start_time: str, duration_hours: float) -> bool:
        hour, minute = parse_time_of_day(start_time)
        requested = time(hour, minute)
        return any(slot.start.time() == requested for slot in self.available_slots(day, duration_hours))
