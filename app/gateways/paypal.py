"""PayPal payment gateway adapter.

Orders v2 REST API with client-credentials OAuth.
Documentation: https://developer.paypal.com/docs/api/orders/v2/
"""

import logging

import httpx

from app.config import settings
from app.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
    to_major_units,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class PayPalGateway(PaymentGateway):
    """PayPal Checkout (create order, buyer approves, capture)."""

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self.client_id = settings.paypal_client_id
        self.client_secret = settings.paypal_client_secret
        self.sandbox = settings.paypal_sandbox

        # Environment safety: force sandbox in non-production
        if settings.environment != "production":
            self.sandbox = True

        self.base_url = (
            "https://api-m.sandbox.paypal.com"
            if self.sandbox
            else "https://api-m.paypal.com"
        )
        self._http_client = http_client

    @property
    def is_sandbox(self) -> bool:
        return self.sandbox

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.PAYPAL

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(base_url=self.base_url, timeout=30.0)
        return self._http_client

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _access_token(self) -> str:
        response = await self.http_client.post(
            "/v1/oauth2/token",
            auth=(self.client_id or "", self.client_secret or ""),
            data={"grant_type": "client_credentials"},
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        token = await self._access_token()
        response = await self.http_client.request(
            method,
            path,
            json=json,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create a PayPal order awaiting buyer approval."""
        if not self.configured:
            return PaymentResult(success=False, error_message="PayPal credentials not configured")

        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "custom_id": reference_id,
                    "description": description[:127],
                    "amount": {
                        "currency_code": currency.upper(),
                        "value": to_major_units(amount),
                    },
                }
            ],
        }

        try:
            order = await self._request("POST", "/v2/checkout/orders", json=body)
        except httpx.HTTPError as e:
            logger.warning(f"PayPal order creation failed for booking {reference_id}: {e}")
            return PaymentResult(success=False, error_message=str(e))

        approve_url = next(
            (link["href"] for link in order.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        return PaymentResult(
            success=True,
            transaction_id=order["id"],
            amount=amount,
            currency=currency.upper(),
            raw_response={"id": order["id"], "status": order.get("status"), "approve_url": approve_url},
        )

    async def verify_payment(
        self,
        transaction_id: str,
    ) -> PaymentResult:
        """Capture an approved order (or confirm an already captured one)."""
        if not self.configured:
            return PaymentResult(success=False, error_message="PayPal credentials not configured")

        try:
            order = await self._request("GET", f"/v2/checkout/orders/{transaction_id}")
            if order.get("status") == "APPROVED":
                order = await self._request("POST", f"/v2/checkout/orders/{transaction_id}/capture")
        except httpx.HTTPError as e:
            logger.warning(f"PayPal capture failed for order {transaction_id}: {e}")
            return PaymentResult(success=False, transaction_id=transaction_id, error_message=str(e))

        if order.get("status") != "COMPLETED":
            return PaymentResult(
                success=False,
                transaction_id=transaction_id,
                error_message=f"PayPal order status is {order.get('status')}",
                raw_response=order,
            )

        captures = order["purchase_units"][0].get("payments", {}).get("captures", [])
        if not captures:
            return PaymentResult(
                success=False,
                transaction_id=transaction_id,
                error_message="PayPal order has no captures",
                raw_response=order,
            )

        capture = captures[0]
        return PaymentResult(
            success=capture.get("status") == "COMPLETED",
            transaction_id=capture["id"],
            amount=to_minor_units(capture["amount"]["value"]),
            currency=capture["amount"]["currency_code"],
            raw_response={"order_id": transaction_id, "capture_id": capture["id"], "status": capture.get("status")},
        )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Refund a capture."""
        if not self.configured:
            return RefundResult(success=False, error_message="PayPal credentials not configured")

        try:
            refund = await self._request(
                "POST",
                f"/v2/payments/captures/{transaction_id}/refund",
                json={"note_to_payer": reason[:255]},
            )
        except httpx.HTTPError as e:
            logger.warning(f"PayPal refund failed for capture {transaction_id}: {e}")
            return RefundResult(success=False, error_message=str(e))

        return RefundResult(
            success=refund.get("status") in ("COMPLETED", "PENDING"),
            refund_id=refund.get("id"),
            raw_response=refund,
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Orders are captured synchronously, so PayPal webhooks are not consumed."""
        return None
