from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"


class PaymentLeg(str, Enum):
    deposit = "deposit"
    remaining = "remaining"


class PaymentMethod(str, Enum):
    card = "card"
    wallet = "wallet"


@dataclass(frozen=True)
class LegPayment:
    paid: bool
    payment_id: str | None
    method: PaymentMethod | None
    paid_at: datetime | None


@dataclass(frozen=True)
class Booking:
    id: str
    date: date
    start_time: str  # HH:MM, studio local time
    duration_hours: float
    status: BookingStatus = BookingStatus.pending

    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str | None = None
    service: str = "recording"
    notes: str | None = None
    total_price: float | None = None
    deposit_amount: float | None = None

    deposit_paid: bool = False
    deposit_payment_id: str | None = None
    deposit_method: PaymentMethod | None = None
    deposit_date: datetime | None = None

    remaining_paid: bool = False
    remaining_payment_id: str | None = None
    remaining_method: PaymentMethod | None = None
    remaining_date: datetime | None = None

    calendar_event_id: str | None = None
    notification_claimed_at: datetime | None = None
    confirmation_sent_at: datetime | None = None
    last_sync_error: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    def start_at(self, tz: ZoneInfo) -> datetime:
        hour, minute = (int(part) for part in self.start_time.split(":"))
        return datetime.combine(self.date, time(hour, minute), tzinfo=tz)

    def end_at(self, tz: ZoneInfo) -> datetime:
        return self.start_at(tz) + timedelta(hours=self.duration_hours)

    def leg(self, leg: PaymentLeg) -> LegPayment:
        if leg == PaymentLeg.deposit:
            return LegPayment(self.deposit_paid, self.deposit_payment_id, self.deposit_method, self.deposit_date)
        return LegPayment(self.remaining_paid, self.remaining_payment_id, self.remaining_method, self.remaining_date)

    @property
    def remaining_amount(self) -> float | None:
        if self.total_price is None:
            return None
        return self.total_price - (self.deposit_amount or 0)


SERVICE_LABELS = {
    "recording": "Recording",
    "mixing": "Mixing",
    "mastering": "Mastering",
    "production": "Production",
}


def service_label(service: str) -> str:
    return SERVICE_LABELS.get(service, service)
