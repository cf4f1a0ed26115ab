"""
Tests for payment reconciliation across webhook, redirect and polling channels.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from app.application.exceptions import (
    BookingNotFound,
    InvalidTransition,
    PaymentGatewayError,
    UnverifiedPayment,
)
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.application.use_cases.reconcile_payment import PaymentReconciler
from app.domain.entities.booking import Booking, BookingStatus, PaymentLeg, PaymentMethod
from app.domain.entities.payment import ConfirmationChannel, PaymentConfirmation
from app.infrastructure.calendar.mock_calendar import MockCalendar
from app.infrastructure.notifications.mock_sender import MockNotificationSender
from app.infrastructure.payments.mock_gateway import MockPaymentGateway
from app.infrastructure.payments.paypal_gateway import PayPalGateway
from app.infrastructure.store.memory_store import MemoryBookingStore

TZ = ZoneInfo("Europe/Paris")
MONDAY = date(2030, 6, 10)
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=TZ)


def pending_booking(booking_id: str = "b1") -> Booking:
    return Booking(
        id=booking_id,
        date=MONDAY,
        start_time="14:00",
        duration_hours=2,
        customer_name="Ana",
        customer_email="ana@example.com",
        total_price=200,
        deposit_amount=60,
    )


class Harness:
    def __init__(
        self,
        store: MemoryBookingStore | None = None,
        booking: Booking | None = None,
        calendar: MockCalendar | None = None,
        wallet: PaymentGatewayPort | None = None,
    ) -> None:
        self.store = store or MemoryBookingStore()
        self.store.create(booking or pending_booking())
        self.card = MockPaymentGateway(PaymentMethod.card)
        self.card.register_payment("cs_1", booking_id="b1", payment_leg=PaymentLeg.deposit)
        self.calendar = calendar or MockCalendar()
        self.notifier = MockNotificationSender()
        gateways: dict[PaymentMethod, PaymentGatewayPort] = {PaymentMethod.card: self.card}
        if wallet is not None:
            gateways[PaymentMethod.wallet] = wallet
        self.reconciler = PaymentReconciler(
            store=self.store,
            gateways=gateways,
            calendar=self.calendar,
            notifier=self.notifier,
            timezone=TZ,
            clock=lambda: NOW,
        )

    def confirm(
        self,
        payment_id: str = "cs_1",
        leg: PaymentLeg = PaymentLeg.deposit,
        channel: ConfirmationChannel = ConfirmationChannel.redirect,
        method: PaymentMethod = PaymentMethod.card,
        booking_id: str = "b1",
    ):
        return self.reconciler.reconcile(
            PaymentConfirmation(
                booking_id=booking_id,
                payment_leg=leg,
                external_payment_id=payment_id,
                payment_method=method,
                channel=channel,
            )
        )


def test_verified_deposit_confirms_booking_and_runs_side_effects():
    h = Harness()

    result = h.confirm()

    assert result.transitioned is True
    assert result.duplicate is False
    assert result.warnings == []
    booking = h.store.get("b1")
    assert booking.status == BookingStatus.confirmed
    assert booking.deposit_paid is True
    assert booking.deposit_payment_id == "cs_1"
    assert booking.deposit_method == PaymentMethod.card
    assert booking.confirmation_sent_at == NOW
    assert booking.last_sync_error is None

    [event] = h.calendar.events
    assert booking.calendar_event_id == event.id
    assert event.summary == "Recording - Ana"
    assert event.start == datetime(2030, 6, 10, 14, 0, tzinfo=TZ)
    assert event.end == datetime(2030, 6, 10, 16, 0, tzinfo=TZ)
    assert [b.id for b in h.notifier.sent] == ["b1"]


def test_webhook_then_redirect_has_one_effect_of_each_kind():
    h = Harness()

    first = h.confirm(channel=ConfirmationChannel.webhook)
    second = h.confirm(channel=ConfirmationChannel.redirect)

    assert first.transitioned and not first.duplicate
    assert second.duplicate and not second.transitioned
    assert second.booking.status == BookingStatus.confirmed
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1
    # the duplicate is recognised from the stored record, without asking the gateway again
    assert h.card.lookups == 1


def test_repeated_confirmations_leave_the_same_final_state():
    h = Harness()
    first = h.confirm(channel=ConfirmationChannel.webhook)

    for channel in (ConfirmationChannel.redirect, ConfirmationChannel.polling, ConfirmationChannel.webhook) * 3:
        h.confirm(channel=channel)

    assert h.store.get("b1") == first.booking
    assert len(h.calendar.events) == 1
    assert h.notifier.attempts == 1


def test_unpaid_or_unknown_payment_changes_nothing():
    h = Harness()
    h.card.register_payment("cs_open", paid=False, booking_id="b1", payment_leg=PaymentLeg.deposit)

    for payment_id in ("cs_open", "cs_missing"):
        with pytest.raises(UnverifiedPayment):
            h.confirm(payment_id=payment_id)

    booking = h.store.get("b1")
    assert booking.status == BookingStatus.pending
    assert booking.deposit_paid is False
    assert h.calendar.events == []
    assert h.notifier.sent == []


def test_payment_for_another_booking_is_rejected():
    h = Harness()
    h.store.create(pending_booking("b2"))

    with pytest.raises(UnverifiedPayment):
        h.confirm(booking_id="b2")

    assert h.store.get("b2").status == BookingStatus.pending


def test_payment_for_another_leg_is_rejected():
    h = Harness()
    h.card.register_payment("cs_rest", booking_id="b1", payment_leg=PaymentLeg.remaining)

    with pytest.raises(UnverifiedPayment):
        h.confirm(payment_id="cs_rest", leg=PaymentLeg.deposit)


def test_method_without_gateway_is_unverified():
    h = Harness()

    with pytest.raises(UnverifiedPayment):
        h.confirm(payment_id="PAY-1", method=PaymentMethod.wallet)


def test_cancelled_booking_is_never_resurrected():
    booking = pending_booking()
    h = Harness(booking=Booking(**{**booking.__dict__, "status": BookingStatus.cancelled}))

    with pytest.raises(InvalidTransition):
        h.confirm()

    assert h.store.get("b1").status == BookingStatus.cancelled
    assert h.card.lookups == 0
    assert h.calendar.events == []


def test_second_payment_for_paid_leg_is_rejected():
    h = Harness()
    h.confirm()
    h.card.register_payment("cs_2", booking_id="b1", payment_leg=PaymentLeg.deposit)

    with pytest.raises(InvalidTransition):
        h.confirm(payment_id="cs_2")

    assert h.store.get("b1").deposit_payment_id == "cs_1"
    # rejected from the stored record; the gateway is never asked about cs_2
    assert h.card.lookups == 1


def test_unknown_booking():
    h = Harness()

    with pytest.raises(BookingNotFound):
        h.confirm(booking_id="nope")


def test_gateway_outage_is_not_trusted():
    h = Harness()
    h.card.available = False

    with pytest.raises(PaymentGatewayError):
        h.confirm()

    assert h.store.get("b1").status == BookingStatus.pending


def test_remaining_leg_records_payment_without_new_side_effects():
    h = Harness()
    h.confirm()
    h.card.register_payment("cs_rest", booking_id="b1", payment_leg=PaymentLeg.remaining)

    result = h.confirm(payment_id="cs_rest", leg=PaymentLeg.remaining)

    assert result.transitioned is True
    booking = h.store.get("b1")
    assert booking.status == BookingStatus.confirmed
    assert booking.remaining_paid is True
    assert booking.remaining_payment_id == "cs_rest"
    assert booking.deposit_payment_id == "cs_1"
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1


def test_remaining_leg_on_pending_booking_keeps_it_pending():
    h = Harness()
    h.card.register_payment("cs_rest", booking_id="b1", payment_leg=PaymentLeg.remaining)

    h.confirm(payment_id="cs_rest", leg=PaymentLeg.remaining)

    booking = h.store.get("b1")
    assert booking.status == BookingStatus.pending
    assert booking.remaining_paid is True
    assert h.calendar.events == []


def test_calendar_failure_is_a_warning_and_recovered_on_redelivery():
    h = Harness()
    h.calendar.fail_on_create = True

    first = h.confirm(channel=ConfirmationChannel.webhook)

    assert first.transitioned is True
    assert first.booking.status == BookingStatus.confirmed
    assert len(first.warnings) == 1
    assert "calendar" in first.warnings[0]
    assert h.store.get("b1").last_sync_error is not None
    assert h.store.get("b1").calendar_event_id is None

    h.calendar.fail_on_create = False
    second = h.confirm(channel=ConfirmationChannel.redirect)

    assert second.duplicate is True
    assert second.warnings == []
    booking = h.store.get("b1")
    assert booking.calendar_event_id is not None
    assert booking.last_sync_error is None
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1


def test_email_failure_releases_claim_and_is_retried():
    h = Harness()
    h.notifier.fail = True

    first = h.confirm()

    assert first.booking.status == BookingStatus.confirmed
    assert any("email" in warning for warning in first.warnings)
    booking = h.store.get("b1")
    assert booking.confirmation_sent_at is None
    assert booking.notification_claimed_at is None

    h.notifier.fail = False
    h.confirm(channel=ConfirmationChannel.polling)

    booking = h.store.get("b1")
    assert booking.confirmation_sent_at == NOW
    assert booking.last_sync_error is None
    assert len(h.notifier.sent) == 1
    assert len(h.calendar.events) == 1


def test_fresh_notification_claim_is_not_sent_twice():
    booking = pending_booking()
    h = Harness(
        booking=Booking(
            **{
                **booking.__dict__,
                "status": BookingStatus.confirmed,
                "deposit_paid": True,
                "deposit_payment_id": "cs_1",
                "calendar_event_id": "evt_existing",
                "notification_claimed_at": NOW,
            }
        )
    )

    h.confirm()

    assert h.notifier.attempts == 0


def test_paid_booking_without_side_effects_is_completed_on_redelivery():
    """A crash after the status write leaves a paid booking with no event or email."""
    booking = pending_booking()
    h = Harness(
        booking=Booking(
            **{
                **booking.__dict__,
                "status": BookingStatus.confirmed,
                "deposit_paid": True,
                "deposit_payment_id": "cs_1",
                "deposit_method": PaymentMethod.card,
            }
        )
    )

    result = h.confirm(channel=ConfirmationChannel.webhook)

    assert result.duplicate is True
    assert h.card.lookups == 0
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1
    assert h.store.get("b1").calendar_event_id == h.calendar.events[0].id


class RacingStore(MemoryBookingStore):
    """Lets a competing writer land between our read and our first conditional write on a field."""

    def __init__(self, race_on: str, competing_fields: dict) -> None:
        super().__init__()
        self._race_on = race_on
        self._competing_fields = competing_fields
        self.raced = False

    def update(self, booking_id, fields, expected=None):
        if not self.raced and expected and self._race_on in expected:
            self.raced = True
            super().update(booking_id, self._competing_fields)
        return super().update(booking_id, fields, expected=expected)


def test_concurrent_channel_recording_same_payment_is_a_duplicate():
    store = RacingStore(
        "deposit_paid",
        {
            "status": BookingStatus.confirmed,
            "deposit_paid": True,
            "deposit_payment_id": "cs_1",
            "deposit_method": PaymentMethod.card,
            "deposit_date": NOW,
        },
    )
    h = Harness(store=store)

    result = h.confirm(channel=ConfirmationChannel.redirect)

    assert store.raced is True
    assert result.transitioned is False
    assert result.duplicate is True
    assert result.booking.status == BookingStatus.confirmed
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1


def test_losing_calendar_attach_race_removes_our_event():
    store = RacingStore("calendar_event_id", {"calendar_event_id": "evt_other"})
    h = Harness(store=store)

    result = h.confirm()

    assert store.raced is True
    assert result.booking.calendar_event_id == "evt_other"
    assert h.calendar.events == []
    assert len(h.notifier.sent) == 1


def test_second_wallet_order_for_paid_deposit_is_never_captured():
    """An approved PayPal order is captured on lookup, so a paid leg must be rejected before asking."""
    captured: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "token"})
        if request.url.path.endswith("/capture"):
            captured.append(request.url.path)
            return httpx.Response(201, json={"id": "ORDER-B", "status": "COMPLETED"})
        return httpx.Response(
            200,
            json={
                "id": "ORDER-B",
                "status": "APPROVED",
                "purchase_units": [{"reference_id": "b1", "custom_id": "deposit"}],
            },
        )

    paypal = PayPalGateway(
        client_id="id",
        secret="secret",
        base_url="https://paypal.test",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    booking = pending_booking()
    h = Harness(
        booking=Booking(
            **{
                **booking.__dict__,
                "status": BookingStatus.confirmed,
                "deposit_paid": True,
                "deposit_payment_id": "ORDER-A",
                "deposit_method": PaymentMethod.wallet,
            }
        ),
        wallet=paypal,
    )

    with pytest.raises(InvalidTransition):
        h.confirm(payment_id="ORDER-B", method=PaymentMethod.wallet)

    assert captured == []
    assert h.store.get("b1").deposit_payment_id == "ORDER-A"


class FailingStore(MemoryBookingStore):
    """Raises on any write touching the given field."""

    def __init__(self, failing_field: str) -> None:
        super().__init__()
        self._failing_field = failing_field

    def update(self, booking_id, fields, expected=None):
        if self._failing_field in fields:
            raise OSError("disk full")
        return super().update(booking_id, fields, expected=expected)


def test_store_failure_after_email_is_a_warning_not_an_error():
    h = Harness(store=FailingStore("confirmation_sent_at"))

    result = h.confirm()

    assert result.transitioned is True
    assert any("not recorded" in warning for warning in result.warnings)
    booking = h.store.get("b1")
    assert booking.status == BookingStatus.confirmed
    assert booking.last_sync_error is not None
    assert booking.notification_claimed_at == NOW
    assert len(h.calendar.events) == 1
    assert len(h.notifier.sent) == 1

    # the claim is still held, so a redelivery within its TTL does not email again
    h.confirm(channel=ConfirmationChannel.webhook)
    assert h.notifier.attempts == 1


def test_failed_cleanup_of_extra_calendar_event_is_not_raised():
    class UndeletableCalendar(MockCalendar):
        def delete_event(self, event_id):
            raise TimeoutError("calendar timed out")

    store = RacingStore("calendar_event_id", {"calendar_event_id": "evt_other"})
    h = Harness(store=store, calendar=UndeletableCalendar())

    result = h.confirm()

    assert result.warnings == []
    assert result.booking.calendar_event_id == "evt_other"
    assert len(h.notifier.sent) == 1


class CancelAfterPaymentStore(MemoryBookingStore):
    """An admin cancel lands right after the deposit is recorded."""

    def update(self, booking_id, fields, expected=None):
        updated = super().update(booking_id, fields, expected=expected)
        if fields.get("deposit_paid"):
            super().update(booking_id, {"status": BookingStatus.cancelled})
        return updated


def test_cancel_after_payment_write_skips_calendar_and_email():
    h = Harness(store=CancelAfterPaymentStore())

    result = h.confirm()

    assert result.transitioned is True
    assert result.booking.status == BookingStatus.cancelled
    assert h.store.get("b1").calendar_event_id is None
    assert h.calendar.events == []
    assert h.notifier.sent == []


def test_cancel_while_event_is_created_removes_the_event():
    class CancellingCalendar(MockCalendar):
        """Simulates the admin cancel committing while the provider call is in flight."""

        def __init__(self, store: MemoryBookingStore) -> None:
            super().__init__()
            self._store = store

        def create_event(self, summary, description, start, end):
            event_id = super().create_event(summary, description, start, end)
            self._store.update("b1", {"status": BookingStatus.cancelled})
            return event_id

    store = MemoryBookingStore()
    h = Harness(store=store, calendar=CancellingCalendar(store))

    result = h.confirm()

    assert result.booking.status == BookingStatus.cancelled
    assert result.booking.calendar_event_id is None
    assert h.calendar.events == []
    assert h.notifier.sent == []
