from __future__ import annotations

import logging

from app.application.exceptions import PaymentGatewayError
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.domain.entities.booking import PaymentLeg, PaymentMethod
from app.domain.entities.payment import GatewayPayment


class MockPaymentGateway(PaymentGatewayPort):
    def __init__(self, method: PaymentMethod = PaymentMethod.card) -> None:
        self.method = method
        self._payments: dict[str, GatewayPayment] = {}
        self.lookups = 0
        self.available = True
        self._logger = logging.getLogger(__name__)

    def register_payment(
        self,
        payment_id: str,
        paid: bool = True,
        booking_id: str | None = None,
        payment_leg: PaymentLeg | None = None,
    ) -> GatewayPayment:
        payment = GatewayPayment(
            payment_id=payment_id,
            paid=paid,
            raw_status="paid" if paid else "unpaid",
            booking_id=booking_id,
            payment_leg=payment_leg,
        )
        self._payments[payment_id] = payment
        return payment

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        self.lookups += 1
        if not self.available:
            raise PaymentGatewayError("mock gateway is offline")
        payment = self._payments.get(payment_id)
        if payment is None:
            self._logger.info("Mock gateway has no such payment", extra={"payment_id": payment_id})
            return GatewayPayment(payment_id=payment_id, paid=False, raw_status="not_found")
        return payment
