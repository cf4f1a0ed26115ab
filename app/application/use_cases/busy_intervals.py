from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.application.exceptions import CalendarUnavailable
from app.application.ports.calendar import CalendarPort
from app.domain.entities.slot import BusyInterval, CalendarEvent

DAY_END_TIME = time(23, 59, 59, 999000)


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Local 00:00:00 and 23:59:59.999 of a calendar day."""
    return (
        datetime.combine(day, time(0, 0), tzinfo=tz),
        datetime.combine(day, DAY_END_TIME, tzinfo=tz),
    )


def to_interval(event: CalendarEvent, tz: ZoneInfo) -> BusyInterval | None:
    """
    Normalize one provider event into a closed interval.
    All-day end dates are exclusive: an event ending on D+1 covers D only.
    """
    if event.start is not None and event.end is not None:
        start = event.start if event.start.tzinfo else event.start.replace(tzinfo=tz)
        end = event.end if event.end.tzinfo else event.end.replace(tzinfo=tz)
    elif event.start_date is not None:
        last_day = event.start_date
        if event.end_date is not None and event.end_date > event.start_date:
            last_day = event.end_date - timedelta(days=1)
        start = datetime.combine(event.start_date, time(0, 0), tzinfo=tz)
        end = datetime.combine(last_day, DAY_END_TIME, tzinfo=tz)
    else:
        return None

    if end <= start:
        return None
    return BusyInterval(start=start, end=end, source_event_id=event.id)


class BusyIntervalExtractor:
    def __init__(
        self,
        calendar: CalendarPort,
        timezone: ZoneInfo,
        query_margin_hours: int = 12,
    ) -> None:
        self._calendar = calendar
        self._timezone = timezone
        # Provider-side clipping happens at UTC day edges; never query tighter than 12h around the day
        self._margin = timedelta(hours=max(query_margin_hours, 12))
        self._logger = logging.getLogger(__name__)

    def extract(self, day: date) -> list[BusyInterval]:
        day_start, day_end = day_bounds(day, self._timezone)

        try:
            events = self._calendar.list_events(day_start - self._margin, day_end + self._margin)
        except CalendarUnavailable:
            raise
        except Exception as e:
            self._logger.error("Calendar listing failed", extra={"date": day.isoformat(), "error": str(e)})
            raise CalendarUnavailable(str(e)) from e

        intervals: list[BusyInterval] = []
        for event in events:
            if (event.status or "").lower() == "cancelled":
                continue

            interval = to_interval(event, self._timezone)
            if interval is None:
                self._logger.warning(
                    "Skipping calendar event without a usable time range",
                    extra={"event_id": event.id, "date": day.isoformat()},
                )
                continue

            if interval.start <= day_end and interval.end >= day_start:
                intervals.append(interval)

        self._logger.info(
            "Busy intervals extracted",
            extra={"date": day.isoformat(), "reason": f"{len(intervals)}/{len(events)} events overlap the day"},
        )
        return intervals
