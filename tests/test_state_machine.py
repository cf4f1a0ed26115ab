from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.application.exceptions import InvalidTransition
from app.application.utils.booking_state_machine import cancellation, is_duplicate, payment_transition
from app.domain.entities.booking import Booking, BookingStatus, PaymentLeg, PaymentMethod

TZ = ZoneInfo("Europe/Paris")
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=TZ)
PENDING = Booking(id="b1", date=date(2030, 6, 10), start_time="14:00", duration_hours=2)


def test_deposit_confirms_pending_booking():
    transition = payment_transition(PENDING, PaymentLeg.deposit, PaymentMethod.card, "cs_1", NOW)

    assert transition.status_change == BookingStatus.confirmed
    assert transition.changes["deposit_paid"] is True
    assert transition.changes["deposit_payment_id"] == "cs_1"
    assert transition.changes["deposit_method"] == PaymentMethod.card
    assert transition.changes["deposit_date"] == NOW
    assert transition.expected == {"status": BookingStatus.pending, "deposit_paid": False}


def test_remaining_payment_does_not_change_status():
    confirmed = replace(PENDING, status=BookingStatus.confirmed, deposit_paid=True, deposit_payment_id="cs_1")

    transition = payment_transition(confirmed, PaymentLeg.remaining, PaymentMethod.wallet, "PAY-9", NOW)

    assert transition.status_change is None
    assert transition.changes == {
        "remaining_paid": True,
        "remaining_payment_id": "PAY-9",
        "remaining_method": PaymentMethod.wallet,
        "remaining_date": NOW,
    }


def test_cancelled_booking_rejects_any_payment():
    cancelled = replace(PENDING, status=BookingStatus.cancelled)

    for leg in PaymentLeg:
        with pytest.raises(InvalidTransition):
            payment_transition(cancelled, leg, PaymentMethod.card, "cs_1", NOW)


def test_leg_paid_by_another_payment_is_rejected():
    paid = replace(PENDING, status=BookingStatus.confirmed, deposit_paid=True, deposit_payment_id="cs_1")

    with pytest.raises(InvalidTransition):
        payment_transition(paid, PaymentLeg.deposit, PaymentMethod.card, "cs_2", NOW)


def test_duplicate_detection_needs_same_payment_id():
    paid = replace(PENDING, deposit_paid=True, deposit_payment_id="cs_1")

    assert is_duplicate(paid, PaymentLeg.deposit, "cs_1")
    assert not is_duplicate(paid, PaymentLeg.deposit, "cs_2")
    assert not is_duplicate(paid, PaymentLeg.remaining, "cs_1")


def test_cancellation_once():
    transition = cancellation(PENDING)
    assert transition.changes == {"status": BookingStatus.cancelled}

    with pytest.raises(InvalidTransition):
        cancellation(replace(PENDING, status=BookingStatus.cancelled))
