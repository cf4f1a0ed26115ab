from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.booking import PaymentMethod
from app.domain.entities.payment import GatewayPayment


class PaymentGatewayPort(ABC):
    method: PaymentMethod

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """
        Ask the gateway for its own status of a payment.
        Raises PaymentGatewayError when the gateway cannot answer.
        """
        raise NotImplementedError
