"""Stripe and PayPal adapters against stubbed gateway APIs."""

import json
from types import SimpleNamespace

import httpx
import pytest
import stripe

from app.config import settings
from app.gateways.base import to_major_units, to_minor_units
from app.gateways.paypal import PayPalGateway
from app.gateways.stripe_gateway import StripeGateway

SANDBOX = "https://api-m.sandbox.paypal.com"


def test_minor_units():
    assert to_minor_units("123.45") == 12345
    assert to_minor_units("5000.00") == 500000
    assert to_minor_units("0.29") == 29
    assert to_major_units(12345) == "123.45"


class TestPayPal:
    @pytest.fixture(autouse=True)
    def credentials(self, monkeypatch):
        monkeypatch.setattr(settings, "paypal_client_id", "client")
        monkeypatch.setattr(settings, "paypal_client_secret", "secret")
        monkeypatch.setattr(settings, "paypal_sandbox", False)

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    def _gateway(self, requests: list, order_status: str = "APPROVED") -> PayPalGateway:
        completed = {
            "id": "ORDER-1",
            "status": "COMPLETED",
            "purchase_units": [
                {
                    "payments": {
                        "captures": [
                            {
                                "id": "CAP-1",
                                "status": "COMPLETED",
                                "amount": {"value": "5000.00", "currency_code": "RUB"},
                            }
                        ]
                    }
                }
            ],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            path = request.url.path
            if path == "/v1/oauth2/token":
                return httpx.Response(200, json={"access_token": "token-1"})
            if path == "/v2/checkout/orders" and request.method == "POST":
                return httpx.Response(
                    201,
                    json={
                        "id": "ORDER-1",
                        "status": "CREATED",
                        "links": [{"rel": "approve", "href": "https://paypal.test/approve"}],
                    },
                )
            if path == "/v2/checkout/orders/ORDER-1":
                if order_status == "COMPLETED":
                    return httpx.Response(200, json=completed)
                return httpx.Response(200, json={"id": "ORDER-1", "status": order_status})
            if path == "/v2/checkout/orders/ORDER-1/capture":
                return httpx.Response(201, json=completed)
            if path == "/v2/payments/captures/CAP-1/refund":
                return httpx.Response(201, json={"id": "REF-1", "status": "COMPLETED"})
            return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=SANDBOX)
        return PayPalGateway(http_client=client)

    def test_sandbox_forced_outside_production(self):
        gateway = PayPalGateway()
        assert gateway.is_sandbox is True
        assert gateway.base_url == SANDBOX

    async def test_create_order(self, requests):
        gateway = self._gateway(requests)
        result = await gateway.create_payment(500000, "rub", "booking-1", "Booking VS-1")

        assert result.success is True
        assert result.transaction_id == "ORDER-1"
        assert result.raw_response["approve_url"] == "https://paypal.test/approve"

        body = json.loads(requests[-1].content)
        assert body["purchase_units"][0]["amount"] == {"currency_code": "RUB", "value": "5000.00"}
        assert requests[-1].headers["Authorization"] == "Bearer token-1"

    async def test_approved_order_is_captured(self, requests):
        gateway = self._gateway(requests)
        result = await gateway.verify_payment("ORDER-1")

        assert result.success is True
        assert result.transaction_id == "CAP-1"
        assert result.amount == 500000
        assert result.currency == "RUB"
        assert result.raw_response["order_id"] == "ORDER-1"
        assert [r.url.path for r in requests if r.url.path != "/v1/oauth2/token"] == [
            "/v2/checkout/orders/ORDER-1",
            "/v2/checkout/orders/ORDER-1/capture",
        ]

    async def test_already_captured_order(self, requests):
        gateway = self._gateway(requests, order_status="COMPLETED")
        result = await gateway.verify_payment("ORDER-1")

        assert result.success is True
        assert result.transaction_id == "CAP-1"
        assert not any(r.url.path.endswith("/capture") for r in requests)

    async def test_unapproved_order_fails(self, requests):
        gateway = self._gateway(requests, order_status="CREATED")
        result = await gateway.verify_payment("ORDER-1")

        assert result.success is False
        assert result.error_message == "PayPal order status is CREATED"

    async def test_http_error_is_reported(self, requests):
        gateway = self._gateway(requests)
        result = await gateway.verify_payment("ORDER-404")

        assert result.success is False
        assert result.transaction_id == "ORDER-404"

    async def test_refund_uses_capture_id(self, requests):
        gateway = self._gateway(requests)
        result = await gateway.process_refund("CAP-1", 500000, "Customer request")

        assert result.success is True
        assert result.refund_id == "REF-1"
        assert requests[-1].url.path == "/v2/payments/captures/CAP-1/refund"

    async def test_unconfigured(self, monkeypatch):
        monkeypatch.setattr(settings, "paypal_client_id", None)
        result = await PayPalGateway().verify_payment("ORDER-1")
        assert result.success is False


class TestStripe:
    @pytest.fixture(autouse=True)
    def secret_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")

    def _intent(self, monkeypatch, status: str, amount_received: int = 500000):
        calls = []

        def retrieve(transaction_id, api_key=None):
            calls.append((transaction_id, api_key))
            return SimpleNamespace(
                id=transaction_id, status=status, amount_received=amount_received, currency="rub"
            )

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
        return calls

    def test_test_mode(self):
        assert StripeGateway().is_test_mode is True

    async def test_succeeded_intent_reports_amount_received(self, monkeypatch):
        calls = self._intent(monkeypatch, "succeeded", amount_received=450000)
        result = await StripeGateway().verify_payment("pi_123")

        assert calls == [("pi_123", "sk_test_123")]
        assert result.success is True
        assert result.amount == 450000
        assert result.currency == "RUB"

    async def test_unfinished_intent(self, monkeypatch):
        self._intent(monkeypatch, "requires_payment_method")
        result = await StripeGateway().verify_payment("pi_123")

        assert result.success is False
        assert result.amount is None
        assert result.error_message == "Payment intent status is requires_payment_method"

    async def test_stripe_error(self, monkeypatch):
        def retrieve(transaction_id, api_key=None):
            raise stripe.StripeError("No such payment_intent")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
        result = await StripeGateway().verify_payment("pi_missing")

        assert result.success is False
        assert "No such payment_intent" in result.error_message

    async def test_unconfigured(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", None)
        result = await StripeGateway().verify_payment("pi_123")
        assert result.success is False
