from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from app.application.exceptions import BookingNotFound, SlotUnavailable
from app.application.ports.booking_store import BookingStorePort
from app.application.ports.calendar import CalendarPort
from app.application.use_cases.availability import AvailabilityService
from app.application.utils.booking_state_machine import cancellation
from app.domain.entities.booking import Booking, BookingStatus


class CreateBookingUseCase:
    def __init__(
        self,
        store: BookingStorePort,
        availability: AvailabilityService,
        timezone: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._availability = availability
        self._clock = clock or (lambda: datetime.now(timezone))
        self._logger = logging.getLogger(__name__)

    def execute(
        self,
        day: date,
        start_time: str,
        duration_hours: float,
        customer_name: str,
        customer_email: str,
        service: str,
        customer_phone: str | None = None,
        notes: str | None = None,
        total_price: float | None = None,
        deposit_amount: float | None = None,
    ) -> Booking:
        """Create a pending booking for an offered slot. Payment confirmation happens later."""
        if not self._availability.is_slot_available(day, start_time, duration_hours):
            raise SlotUnavailable(f"{day.isoformat()} {start_time} ({duration_hours}h) is not available")

        now = self._clock()
        booking = Booking(
            id=uuid.uuid4().hex,
            date=day,
            start_time=start_time,
            duration_hours=duration_hours,
            status=BookingStatus.pending,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            service=service,
            notes=notes,
            total_price=total_price,
            deposit_amount=deposit_amount,
            created_at=now,
            updated_at=now,
        )
        booking = self._store.create(booking)
        self._logger.info("Pending booking created", extra={"booking_id": booking.id, "date": day.isoformat()})
        return booking


class CancelBookingUseCase:
    def __init__(self, store: BookingStorePort, calendar: CalendarPort) -> None:
        self._store = store
        self._calendar = calendar
        self._logger = logging.getLogger(__name__)

    def execute(self, booking_id: str) -> Booking:
        booking = self._store.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"booking {booking_id} not found")

        transition = cancellation(booking)
        booking = self._store.update(booking.id, transition.changes, expected=transition.expected)
        self._logger.info("Booking cancelled", extra={"booking_id": booking.id})

        if booking.calendar_event_id:
            # Freeing the calendar is best effort; the cancellation itself is already stored
            try:
                deleted = self._calendar.delete_event(booking.calendar_event_id)
            except Exception as e:
                self._logger.error(
                    "Error deleting calendar event",
                    extra={"booking_id": booking.id, "event_id": booking.calendar_event_id, "error": str(e)},
                )
                deleted = False
            if not deleted:
                booking = self._store.update(booking.id, {"last_sync_error": "calendar event could not be deleted"})
        return booking
