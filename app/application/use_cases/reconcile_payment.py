from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Mapping
from zoneinfo import ZoneInfo

from app.application.exceptions import (
    BookingNotFound,
    ConcurrentUpdateError,
    DownstreamSideEffectFailure,
    InvalidTransition,
    UnverifiedPayment,
)
from app.application.ports.booking_store import BookingStorePort
from app.application.ports.calendar import CalendarPort
from app.application.ports.notification import NotificationSenderPort
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.application.utils.booking_state_machine import is_duplicate, payment_transition
from app.domain.entities.booking import Booking, BookingStatus, PaymentLeg, PaymentMethod, service_label
from app.domain.entities.payment import GatewayPayment, PaymentConfirmation


@dataclass(frozen=True)
class ReconciliationResult:
    booking: Booking
    payment_leg: PaymentLeg
    transitioned: bool
    duplicate: bool
    warnings: list[str] = field(default_factory=list)


class PaymentReconciler:
    """
    Single entry point for payment confirmations from every channel
    (gateway webhook, browser redirect, client polling).

    Per (booking_id, payment_leg) the status transition is applied at most once,
    through one conditional write on the booking record. Side effects of the
    deposit leg (calendar event, confirmation email) are keyed off fields of that
    same record, so any later delivery of the same confirmation can finish work an
    earlier attempt left undone without repeating what already happened.
    """

    def __init__(
        self,
        store: BookingStorePort,
        gateways: Mapping[PaymentMethod, PaymentGatewayPort],
        calendar: CalendarPort,
        notifier: NotificationSenderPort,
        timezone: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
        max_attempts: int = 3,
        notification_claim_ttl: timedelta = timedelta(minutes=10),
    ) -> None:
        self._store = store
        self._gateways = dict(gateways)
        self._calendar = calendar
        self._notifier = notifier
        self._timezone = timezone
        self._clock = clock or (lambda: datetime.now(timezone))
        self._max_attempts = max_attempts
        self._claim_ttl = notification_claim_ttl
        self._logger = logging.getLogger(__name__)

    def reconcile(self, confirmation: PaymentConfirmation) -> ReconciliationResult:
        leg = confirmation.payment_leg
        context = {
            "booking_id": confirmation.booking_id,
            "payment_leg": leg.value,
            "channel": confirmation.channel.value,
            "payment_id": confirmation.external_payment_id,
        }
        self._logger.info("Payment confirmation received", extra=context)

        verified: GatewayPayment | None = None
        transitioned = False
        duplicate = False

        for _ in range(self._max_attempts):
            booking = self._load(confirmation.booking_id)

            if booking.status == BookingStatus.cancelled:
                self._logger.warning("Confirmation for cancelled booking rejected", extra=context)
                raise InvalidTransition(f"booking {booking.id} is cancelled")

            if is_duplicate(booking, leg, confirmation.external_payment_id):
                self._logger.warning("Duplicate payment confirmation", extra=context)
                duplicate = True
                break

            # Raises for a leg paid by another payment before the gateway is asked;
            # some gateways capture funds on lookup
            transition = payment_transition(
                booking,
                leg,
                confirmation.payment_method,
                confirmation.external_payment_id,
                self._clock(),
            )

            if verified is None:
                verified = self._verify(confirmation)

            try:
                booking = self._store.update(booking.id, transition.changes, expected=transition.expected)
            except ConcurrentUpdateError:
                self._logger.warning("Booking changed during reconciliation, re-reading", extra=context)
                continue

            transitioned = True
            self._logger.info(
                "Payment recorded",
                extra={**context, "reason": f"status={booking.status.value}"},
            )
            break
        else:
            raise ConcurrentUpdateError(
                f"booking {confirmation.booking_id} kept changing during reconciliation"
            )

        warnings: list[str] = []
        if leg == PaymentLeg.deposit and booking.status == BookingStatus.confirmed:
            booking, warnings = self._complete_side_effects(booking, context)

        return ReconciliationResult(
            booking=booking,
            payment_leg=leg,
            transitioned=transitioned,
            duplicate=duplicate,
            warnings=warnings,
        )

    def _load(self, booking_id: str) -> Booking:
        booking = self._store.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"booking {booking_id} not found")
        return booking

    def _verify(self, confirmation: PaymentConfirmation) -> GatewayPayment:
        gateway = self._gateways.get(confirmation.payment_method)
        if gateway is None:
            raise UnverifiedPayment(f"no gateway configured for {confirmation.payment_method.value} payments")

        # PaymentGatewayError propagates: an unreachable gateway is retried, never trusted
        payment = gateway.fetch_payment(confirmation.external_payment_id)

        if not payment.paid:
            raise UnverifiedPayment(
                f"gateway reports {confirmation.external_payment_id} as {payment.raw_status or 'unpaid'}"
            )
        if payment.booking_id and payment.booking_id != confirmation.booking_id:
            raise UnverifiedPayment(
                f"payment {payment.payment_id} belongs to booking {payment.booking_id}"
            )
        if payment.payment_leg and payment.payment_leg != confirmation.payment_leg:
            raise UnverifiedPayment(
                f"payment {payment.payment_id} was made for the {payment.payment_leg.value} leg"
            )
        return payment

    def _complete_side_effects(self, booking: Booking, context: dict[str, str]) -> tuple[Booking, list[str]]:
        errors: list[str] = []

        try:
            booking = self._ensure_calendar_event(booking)
        except DownstreamSideEffectFailure as e:
            self._logger.warning("Calendar sync failed", extra={**context, "error": str(e)})
            errors.append(str(e))

        try:
            booking = self._ensure_notification(booking)
        except DownstreamSideEffectFailure as e:
            self._logger.warning("Confirmation email failed", extra={**context, "error": str(e)})
            errors.append(str(e))

        last_error = "; ".join(errors) or None
        if last_error != booking.last_sync_error:
            try:
                booking = self._store.update(booking.id, {"last_sync_error": last_error})
            except Exception as e:
                self._logger.exception("Could not record side effect state", extra={**context, "error": str(e)})
        return booking, errors

    def _reload(self, booking: Booking) -> Booking:
        try:
            current = self._store.get(booking.id)
        except Exception as e:
            raise DownstreamSideEffectFailure(f"could not re-read booking: {e}") from e
        return current or booking

    def _discard_event(self, booking_id: str, event_id: str) -> None:
        try:
            self._calendar.delete_event(event_id)
        except Exception as e:
            self._logger.error(
                "Could not delete calendar event",
                extra={"booking_id": booking_id, "event_id": event_id, "error": str(e)},
            )

    def _ensure_calendar_event(self, booking: Booking) -> Booking:
        # Status is read again here: a cancel may have landed after the payment write
        booking = self._reload(booking)
        if booking.status != BookingStatus.confirmed or booking.calendar_event_id:
            return booking

        label = service_label(booking.service)
        try:
            event_id = self._calendar.create_event(
                summary=f"{label} - {booking.customer_name}",
                description=self._event_description(booking, label),
                start=booking.start_at(self._timezone),
                end=booking.end_at(self._timezone),
            )
        except Exception as e:
            raise DownstreamSideEffectFailure(f"calendar event creation failed: {e}") from e

        try:
            booking = self._store.update(
                booking.id,
                {"calendar_event_id": event_id},
                expected={"calendar_event_id": None, "status": BookingStatus.confirmed},
            )
        except ConcurrentUpdateError:
            # Another attempt attached its own event, or the booking was cancelled meanwhile
            self._logger.warning(
                "Booking changed before calendar event was attached, removing ours",
                extra={"booking_id": booking.id, "event_id": event_id},
            )
            self._discard_event(booking.id, event_id)
            return self._reload(booking)
        except Exception as e:
            self._discard_event(booking.id, event_id)
            raise DownstreamSideEffectFailure(f"could not attach calendar event: {e}") from e

        self._logger.info("Calendar event created", extra={"booking_id": booking.id, "event_id": event_id})
        return booking

    def _ensure_notification(self, booking: Booking) -> Booking:
        booking = self._reload(booking)
        if booking.status != BookingStatus.confirmed or booking.confirmation_sent_at is not None:
            return booking

        now = self._clock()
        claimed_at = booking.notification_claimed_at
        if claimed_at is not None and now - claimed_at < self._claim_ttl:
            # Another attempt is sending right now
            return booking

        try:
            booking = self._store.update(
                booking.id,
                {"notification_claimed_at": now},
                expected={
                    "notification_claimed_at": claimed_at,
                    "confirmation_sent_at": None,
                    "status": BookingStatus.confirmed,
                },
            )
        except ConcurrentUpdateError:
            return self._reload(booking)
        except Exception as e:
            raise DownstreamSideEffectFailure(f"could not claim confirmation email: {e}") from e

        try:
            self._notifier.send_booking_confirmation(booking)
        except Exception as e:
            try:
                self._store.update(booking.id, {"notification_claimed_at": None})
            except Exception as release_error:
                # The claim then expires after its TTL
                self._logger.error(
                    "Could not release email claim",
                    extra={"booking_id": booking.id, "error": str(release_error)},
                )
            raise DownstreamSideEffectFailure(f"confirmation email failed: {e}") from e

        self._logger.info("Confirmation email sent", extra={"booking_id": booking.id})
        try:
            return self._store.update(booking.id, {"confirmation_sent_at": self._clock()})
        except Exception as e:
            # The claim stays in place, so no other attempt resends before the TTL
            raise DownstreamSideEffectFailure(f"confirmation email sent but not recorded: {e}") from e

    @staticmethod
    def _event_description(booking: Booking, label: str) -> str:
        lines = [
            f"Booking for {label}",
            f"Customer: {booking.customer_name}",
            f"Email: {booking.customer_email}",
            f"Phone: {booking.customer_phone or 'not provided'}",
        ]
        if booking.total_price is not None:
            lines.append(f"Total price: {booking.total_price} EUR")
        if booking.deposit_amount is not None:
            lines.append(f"Deposit: {booking.deposit_amount} EUR")
        lines.append(f"Booking id: {booking.id}")
        return "\n".join(lines)
