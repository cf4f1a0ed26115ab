from __future__ import annotations

import json
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any

from app.application.exceptions import BookingNotFound
from app.application.ports.booking_store import BookingStorePort
from app.domain.entities.booking import Booking, BookingStatus, PaymentMethod
from app.infrastructure.store.memory_store import apply_update

DATETIME_FIELDS = (
    "deposit_date",
    "remaining_date",
    "notification_claimed_at",
    "confirmation_sent_at",
    "created_at",
    "updated_at",
)


class JsonBookingStore(BookingStorePort):
    """One JSON document per booking. Conditional updates are atomic within this process."""

    def __init__(self, data_dir: str = "./data/bookings") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()  # Lock for managing locks dict

    def _get_lock(self, booking_id: str) -> threading.Lock:
        """Get or create a lock for a booking_id."""
        with self._lock_lock:
            if booking_id not in self._locks:
                self._locks[booking_id] = threading.Lock()
            return self._locks[booking_id]

    def _get_file_path(self, booking_id: str) -> Path:
        safe_id = "".join(ch for ch in booking_id if ch.isalnum() or ch in "-_")
        if not safe_id or safe_id != booking_id:
            raise ValueError(f"Invalid booking id: {booking_id!r}")
        return self._data_dir / f"{safe_id}.json"

    def _load(self, booking_id: str) -> Booking | None:
        file_path = self._get_file_path(booking_id)
        if not file_path.exists():
            return None
        with open(file_path, "r", encoding="utf-8") as f:
            return self._deserialize(json.load(f))

    def _save(self, booking: Booking) -> None:
        """Save booking to JSON file atomically."""
        file_path = self._get_file_path(booking.id)
        temp_path = file_path.with_suffix(".json.tmp")

        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._serialize(booking), f, indent=2, ensure_ascii=False)
            # Atomic rename
            temp_path.replace(file_path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _serialize(self, booking: Booking) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": booking.id,
            "date": booking.date.isoformat(),
            "start_time": booking.start_time,
            "duration_hours": booking.duration_hours,
            "status": booking.status.value,
            "customer_name": booking.customer_name,
            "customer_email": booking.customer_email,
            "customer_phone": booking.customer_phone,
            "service": booking.service,
            "notes": booking.notes,
            "total_price": booking.total_price,
            "deposit_amount": booking.deposit_amount,
            "deposit_paid": booking.deposit_paid,
            "deposit_payment_id": booking.deposit_payment_id,
            "deposit_method": booking.deposit_method.value if booking.deposit_method else None,
            "remaining_paid": booking.remaining_paid,
            "remaining_payment_id": booking.remaining_payment_id,
            "remaining_method": booking.remaining_method.value if booking.remaining_method else None,
            "calendar_event_id": booking.calendar_event_id,
            "last_sync_error": booking.last_sync_error,
            "version": booking.version,
        }
        for name in DATETIME_FIELDS:
            value: datetime | None = getattr(booking, name)
            data[name] = value.isoformat() if value else None
        return data

    def _deserialize(self, data: dict[str, Any]) -> Booking:
        timestamps: dict[str, datetime | None] = {}
        for name in DATETIME_FIELDS:
            raw = data.get(name)
            timestamps[name] = datetime.fromisoformat(raw) if raw else None

        return Booking(
            id=data["id"],
            date=date.fromisoformat(data["date"]),
            start_time=data["start_time"],
            duration_hours=float(data["duration_hours"]),
            status=BookingStatus(data.get("status", "pending")),
            customer_name=data.get("customer_name", ""),
            customer_email=data.get("customer_email", ""),
            customer_phone=data.get("customer_phone"),
            service=data.get("service", "recording"),
            notes=data.get("notes"),
            total_price=data.get("total_price"),
            deposit_amount=data.get("deposit_amount"),
            deposit_paid=bool(data.get("deposit_paid", False)),
            deposit_payment_id=data.get("deposit_payment_id"),
            deposit_method=PaymentMethod(data["deposit_method"]) if data.get("deposit_method") else None,
            remaining_paid=bool(data.get("remaining_paid", False)),
            remaining_payment_id=data.get("remaining_payment_id"),
            remaining_method=PaymentMethod(data["remaining_method"]) if data.get("remaining_method") else None,
            calendar_event_id=data.get("calendar_event_id"),
            last_sync_error=data.get("last_sync_error"),
            version=int(data.get("version", 0)),
            **timestamps,
        )

    def get(self, booking_id: str) -> Booking | None:
        with self._get_lock(booking_id):
            return self._load(booking_id)

    def create(self, booking: Booking) -> Booking:
        with self._get_lock(booking.id):
            if self._get_file_path(booking.id).exists():
                raise ValueError(f"booking {booking.id} already exists")
            self._save(booking)
            return booking

    def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Booking:
        with self._get_lock(booking_id):
            booking = self._load(booking_id)
            if booking is None:
                raise BookingNotFound(f"booking {booking_id} not found")
            updated = apply_update(booking, fields, expected)
            self._save(updated)
            return updated

    def list_bookings(self, day: date | None = None) -> list[Booking]:
        bookings: list[Booking] = []
        for file_path in self._data_dir.glob("*.json"):
            with self._get_lock(file_path.stem):
                booking = self._load(file_path.stem)
            if booking is not None and (day is None or booking.date == day):
                bookings.append(booking)
        return sorted(bookings, key=lambda b: (b.date, b.start_time))
