from __future__ import annotations

import json
import logging
from typing import Any

import stripe

from app.application.exceptions import UnverifiedPayment
from app.domain.entities.booking import PaymentLeg, PaymentMethod
from app.domain.entities.payment import ConfirmationChannel, PaymentConfirmation
from app.infrastructure.payments.stripe_gateway import leg_from_metadata, stripe_field

logger = logging.getLogger(__name__)

COMPLETED_EVENT_TYPES = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}


def construct_stripe_event(payload: bytes, signature_header: str | None, webhook_secret: str | None, env: str) -> Any:
    """Return the verified Stripe event, or raise UnverifiedPayment."""
    if not signature_header:
        if env.lower() in {"dev", "local"}:
            logger.warning("Missing Stripe signature header; accepting in dev mode")
            try:
                return json.loads(payload.decode("utf-8")) if payload else {}
            except ValueError as e:
                raise UnverifiedPayment(f"Invalid webhook payload: {e}") from e
        raise UnverifiedPayment("Missing Stripe signature header")

    if not webhook_secret:
        logger.error("Missing webhook secret for signature verification")
        raise UnverifiedPayment("Webhook secret not configured")

    try:
        return stripe.Webhook.construct_event(payload, signature_header, webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.warning("Invalid Stripe webhook signature")
        raise UnverifiedPayment("Invalid webhook signature") from e
    except ValueError as e:
        raise UnverifiedPayment(f"Invalid webhook payload: {e}") from e


def confirmation_from_stripe_event(event: Any) -> PaymentConfirmation | None:
    """Map a completed checkout event to a confirmation; other events are not confirmations."""
    if stripe_field(event, "type") not in COMPLETED_EVENT_TYPES:
        return None

    session = stripe_field(stripe_field(event, "data"), "object")
    metadata = stripe_field(session, "metadata")
    booking_id = stripe_field(metadata, "bookingId")
    session_id = stripe_field(session, "id")
    if not booking_id or not session_id:
        raise UnverifiedPayment("Checkout session without bookingId metadata")

    return PaymentConfirmation(
        booking_id=str(booking_id),
        payment_leg=leg_from_metadata(metadata) or PaymentLeg.deposit,
        external_payment_id=str(session_id),
        payment_method=PaymentMethod.card,
        channel=ConfirmationChannel.webhook,
        raw_gateway_status=stripe_field(session, "payment_status"),
    )
