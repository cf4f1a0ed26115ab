"""
Status rules for a booking.

pending --(verified deposit)--> confirmed
pending|confirmed --(admin)--> cancelled

A verified remaining-balance payment only fills the remaining leg fields.
Every function returns the fields to write together with the prior state the
write must still find, so callers can apply it as one conditional update.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.application.exceptions import InvalidTransition
from app.domain.entities.booking import Booking, BookingStatus, PaymentLeg, PaymentMethod


@dataclass(frozen=True)
class Transition:
    changes: dict[str, Any]
    expected: dict[str, Any] = field(default_factory=dict)

    @property
    def status_change(self) -> BookingStatus | None:
        return self.changes.get("status")


def is_duplicate(booking: Booking, leg: PaymentLeg, payment_id: str) -> bool:
    current = booking.leg(leg)
    return current.paid and current.payment_id == payment_id


def payment_transition(
    booking: Booking,
    leg: PaymentLeg,
    method: PaymentMethod,
    payment_id: str,
    at: datetime,
) -> Transition:
    if booking.status == BookingStatus.cancelled:
        raise InvalidTransition(f"booking {booking.id} is cancelled")

    current = booking.leg(leg)
    if current.paid:
        if current.payment_id == payment_id:
            raise InvalidTransition(f"{leg.value} of booking {booking.id} already recorded")
        raise InvalidTransition(
            f"{leg.value} of booking {booking.id} already paid by {current.payment_id}"
        )

    if leg == PaymentLeg.deposit:
        changes: dict[str, Any] = {
            "deposit_paid": True,
            "deposit_payment_id": payment_id,
            "deposit_method": method,
            "deposit_date": at,
        }
        if booking.status == BookingStatus.pending:
            changes["status"] = BookingStatus.confirmed
        return Transition(
            changes=changes,
            expected={"status": booking.status, "deposit_paid": False},
        )

    return Transition(
        changes={
            "remaining_paid": True,
            "remaining_payment_id": payment_id,
            "remaining_method": method,
            "remaining_date": at,
        },
        expected={"status": booking.status, "remaining_paid": False},
    )


def cancellation(booking: Booking) -> Transition:
    if booking.status == BookingStatus.cancelled:
        raise InvalidTransition(f"booking {booking.id} is already cancelled")
    return Transition(
        changes={"status": BookingStatus.cancelled},
        expected={"status": booking.status},
    )
