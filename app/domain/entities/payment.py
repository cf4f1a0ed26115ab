from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.domain.entities.booking import PaymentLeg, PaymentMethod


class ConfirmationChannel(str, Enum):
    webhook = "webhook"
    redirect = "redirect"
    polling = "polling"


@dataclass(frozen=True)
class PaymentConfirmation:
    booking_id: str
    payment_leg: PaymentLeg
    external_payment_id: str
    payment_method: PaymentMethod = PaymentMethod.card
    channel: ConfirmationChannel = ConfirmationChannel.redirect
    raw_gateway_status: str | None = None  # what the caller claims, never trusted


@dataclass(frozen=True)
class GatewayPayment:
    payment_id: str
    paid: bool
    raw_status: str | None = None
    # Metadata the gateway holds for the payment, when the checkout recorded it
    booking_id: str | None = None
    payment_leg: PaymentLeg | None = None
