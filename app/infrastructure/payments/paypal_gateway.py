from __future__ import annotations

import logging
from typing import Any

import httpx

from app.application.exceptions import PaymentGatewayError
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.core.config import settings
from app.domain.entities.booking import PaymentLeg, PaymentMethod
from app.domain.entities.payment import GatewayPayment


class PayPalGateway(PaymentGatewayPort):
    method = PaymentMethod.wallet

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        base_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._client_id = client_id or settings.PAYPAL_CLIENT_ID
        self._secret = secret or settings.PAYPAL_SECRET
        self._base_url = (base_url or settings.PAYPAL_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

        if not self._client_id or not self._secret:
            raise ValueError("PAYPAL_CLIENT_ID and PAYPAL_SECRET are required for PayPal payments")

    def _access_token(self) -> str:
        response = self._client.post(
            f"{self._base_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._secret),
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise PaymentGatewayError("No access token returned from PayPal")
        return token

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """
        payment_id is the PayPal order id. An order the buyer approved but
        nobody captured yet is captured here; only a COMPLETED order counts as paid.
        """
        try:
            headers = {"Authorization": f"Bearer {self._access_token()}"}
            response = self._client.get(f"{self._base_url}/v2/checkout/orders/{payment_id}", headers=headers)
            if response.status_code == 404:
                return GatewayPayment(payment_id=payment_id, paid=False, raw_status="NOT_FOUND")
            response.raise_for_status()
            order = response.json()

            if order.get("status") == "APPROVED":
                response = self._client.post(
                    f"{self._base_url}/v2/checkout/orders/{payment_id}/capture",
                    json={},
                    headers={**headers, "Content-Type": "application/json"},
                )
                response.raise_for_status()
                order = {**order, **response.json()}
                self._logger.info("PayPal order captured", extra={"payment_id": payment_id})
        except httpx.HTTPError as e:
            self._logger.error("Error fetching PayPal order", extra={"payment_id": payment_id, "error": str(e)})
            raise PaymentGatewayError(f"PayPal order lookup failed: {e}") from e

        return self._to_payment(payment_id, order)

    @staticmethod
    def _to_payment(payment_id: str, order: dict[str, Any]) -> GatewayPayment:
        units = order.get("purchase_units") or [{}]
        unit = units[0] or {}
        leg: PaymentLeg | None = None
        if unit.get("custom_id") in {item.value for item in PaymentLeg}:
            leg = PaymentLeg(unit["custom_id"])
        status = order.get("status")
        return GatewayPayment(
            payment_id=str(order.get("id") or payment_id),
            paid=status == "COMPLETED",
            raw_status=status,
            booking_id=unit.get("reference_id"),
            payment_leg=leg,
        )
