from __future__ import annotations

import logging
from typing import Any

import stripe

from app.application.exceptions import PaymentGatewayError
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.core.config import settings
from app.domain.entities.booking import PaymentLeg, PaymentMethod
from app.domain.entities.payment import GatewayPayment


def stripe_field(obj: Any, name: str) -> Any:
    """Read a field from a StripeObject or a plain decoded dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def leg_from_metadata(metadata: Any) -> PaymentLeg | None:
    raw = stripe_field(metadata, "paymentType")
    try:
        return PaymentLeg(raw) if raw else None
    except ValueError:
        return None


class StripeGateway(PaymentGatewayPort):
    method = PaymentMethod.card

    def __init__(self, secret_key: str | None = None) -> None:
        self._secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self._logger = logging.getLogger(__name__)

        if not self._secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for Stripe payments")

        stripe.api_key = self._secret_key
        stripe.max_network_retries = 1

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """payment_id is the Checkout Session id."""
        try:
            session = stripe.checkout.Session.retrieve(payment_id)
        except stripe.InvalidRequestError as e:
            # Unknown session id: nothing to corroborate
            self._logger.warning("Stripe session not found", extra={"payment_id": payment_id, "error": str(e)})
            return GatewayPayment(payment_id=payment_id, paid=False, raw_status="not_found")
        except stripe.StripeError as e:
            self._logger.error("Error retrieving Stripe session", extra={"payment_id": payment_id, "error": str(e)})
            raise PaymentGatewayError(f"Stripe session lookup failed: {e}") from e

        payment_status = stripe_field(session, "payment_status")
        status = stripe_field(session, "status")
        metadata = stripe_field(session, "metadata")
        return GatewayPayment(
            payment_id=str(stripe_field(session, "id") or payment_id),
            paid=payment_status == "paid" or status == "complete",
            raw_status=f"{status}/{payment_status}",
            booking_id=stripe_field(metadata, "bookingId"),
            payment_leg=leg_from_metadata(metadata),
        )
