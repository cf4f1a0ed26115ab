from __future__ import annotations

import threading
from dataclasses import fields as dataclass_fields, replace
from datetime import date, datetime, timezone
from typing import Any

from app.application.exceptions import BookingNotFound, ConcurrentUpdateError
from app.application.ports.booking_store import BookingStorePort
from app.domain.entities.booking import Booking

BOOKING_FIELDS = frozenset(f.name for f in dataclass_fields(Booking))
READ_ONLY_FIELDS = frozenset({"id", "version", "created_at", "updated_at"})


def apply_update(
    booking: Booking,
    fields: dict[str, Any],
    expected: dict[str, Any] | None,
) -> Booking:
    """Shared compare-and-set step; callers hold the booking's lock."""
    unknown = set(fields) - (BOOKING_FIELDS - READ_ONLY_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update booking fields: {sorted(unknown)}")

    for name, value in (expected or {}).items():
        if name not in BOOKING_FIELDS:
            raise ValueError(f"Unknown booking field: {name}")
        if getattr(booking, name) != value:
            raise ConcurrentUpdateError(
                f"booking {booking.id}: {name} is {getattr(booking, name)!r}, expected {value!r}"
            )

    return replace(
        booking,
        **fields,
        version=booking.version + 1,
        updated_at=datetime.now(timezone.utc),
    )


class MemoryBookingStore(BookingStorePort):
    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.Lock()

    def get(self, booking_id: str) -> Booking | None:
        with self._lock:
            return self._bookings.get(booking_id)

    def create(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"booking {booking.id} already exists")
            self._bookings[booking.id] = booking
            return booking

    def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise BookingNotFound(f"booking {booking_id} not found")
            updated = apply_update(booking, fields, expected)
            self._bookings[booking_id] = updated
            return updated

    def list_bookings(self, day: date | None = None) -> list[Booking]:
        with self._lock:
            bookings = list(self._bookings.values())
        if day is not None:
            bookings = [b for b in bookings if b.date == day]
        return sorted(bookings, key=lambda b: (b.date, b.start_time))
