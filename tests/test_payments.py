"""Payment submission, admin verification, refunds and the Stripe webhook."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.gateways.base import PaymentResult
from app.main import app
from app.models.booking import Booking
from app.models.payment import Payment
from app.services.gateway_service import gateway_service
from tests.factories import API, create_booking, pay, priced_booking


@pytest.fixture
def gateway_ok(monkeypatch):
    """Gateway verification that reports the full booking amount as settled."""
    calls = []

    async def verify_payment(gateway_type, transaction_id):
        calls.append((gateway_type, transaction_id))
        return PaymentResult(
            success=True,
            transaction_id=transaction_id,
            amount=500000,
            currency="RUB",
            raw_response={"id": transaction_id, "status": "succeeded"},
        )

    monkeypatch.setattr(gateway_service, "verify_payment", verify_payment)
    return calls


@pytest.fixture
async def payable(client, customer_headers, admin_headers) -> dict:
    return await priced_booking(client, customer_headers, admin_headers)


class TestPrepare:
    async def test_offline_methods_always_available(self, client, customer_headers, payable):
        data = (await client.get(f"{API}/payments/prepare/{payable['id']}", headers=customer_headers)).json()

        assert data["guard"]["can_pay"] is True
        methods = {m["method"]: m for m in data["payment_methods"]}
        assert set(methods) == {"cash", "bank_transfer"}
        assert methods["bank_transfer"]["requires_verification"] is True
        assert "5000.00 RUB" in methods["bank_transfer"]["instructions"]
        assert payable["booking_number"] in methods["bank_transfer"]["instructions"]

    async def test_card_listed_when_stripe_configured(self, client, customer_headers, payable, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        data = (await client.get(f"{API}/payments/prepare/{payable['id']}", headers=customer_headers)).json()
        assert "credit_card" in {m["method"] for m in data["payment_methods"]}


class TestProcessPayment:
    async def test_cash_confirms_booking(self, client, customer_headers, payable):
        response = await pay(client, customer_headers, payable["id"], "cash")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["payment_status"] == "pending"
        assert data["amount"] == 500000
        assert data["transaction_id"].startswith("CASH-")
        assert data["message"].startswith("Booking confirmed")

    async def test_bank_transfer_awaits_verification(self, client, customer_headers, payable):
        data = (await pay(client, customer_headers, payable["id"], "bank_transfer")).json()

        assert data["status"] == "awaiting_payment"
        assert data["payment_status"] == "pending_verification"
        assert data["requires_verification"] is True

        again = await pay(client, customer_headers, payable["id"], "bank_transfer")
        assert again.status_code == 400
        assert again.json()["code"] == "PAYMENT_PENDING_VERIFICATION"

    async def test_card_payment_verified_with_gateway(self, client, db, customer_headers, payable, gateway_ok):
        response = await pay(client, customer_headers, payable["id"], "credit_card", gateway_reference="pi_123")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "paid"
        assert data["payment_status"] == "paid"
        assert gateway_ok == [("stripe", "pi_123")]

        booking = (await client.get(f"{API}/bookings/{payable['id']}", headers=customer_headers)).json()
        assert booking["final_paid_amount"] == 500000
        assert booking["payment_guard"]["code"] == "ALREADY_PAID"

        payments = (await db.execute(select(Payment))).scalars().all()
        assert len(payments) == 1
        assert payments[0].gateway == "stripe"
        assert payments[0].gateway_transaction_id == "pi_123"

    async def test_resubmitting_settled_reference_is_idempotent(self, client, db, customer_headers, payable, gateway_ok):
        first = (await pay(client, customer_headers, payable["id"], "credit_card", gateway_reference="pi_123")).json()
        second = await pay(client, customer_headers, payable["id"], "credit_card", gateway_reference="pi_123")

        assert second.status_code == 200
        assert second.json()["payment_id"] == first["payment_id"]
        assert len(gateway_ok) == 1
        assert len((await db.execute(select(Payment))).scalars().all()) == 1

    async def test_exchange_rate_defaults_to_one(self, client, db, customer_headers, payable):
        await pay(client, customer_headers, payable["id"], "cash")

        payment = (await db.execute(select(Payment))).scalar_one()
        booking = (await db.execute(select(Booking))).scalar_one()
        assert payment.exchange_rate == 1
        assert booking.exchange_rate_used == 1

    async def test_client_amount_is_ignored(self, client, customer_headers, payable):
        data = (await pay(client, customer_headers, payable["id"], "cash", amount=1)).json()
        assert data["amount"] == 500000

    async def test_amount_mismatch(self, client, customer_headers, payable, monkeypatch):
        async def verify_payment(gateway_type, transaction_id):
            return PaymentResult(success=True, transaction_id=transaction_id, amount=100, currency="RUB")

        monkeypatch.setattr(gateway_service, "verify_payment", verify_payment)
        response = await pay(client, customer_headers, payable["id"], "credit_card", gateway_reference="pi_1")

        assert response.status_code == 402
        assert response.json()["code"] == "AMOUNT_MISMATCH"
        booking = (await client.get(f"{API}/bookings/{payable['id']}", headers=customer_headers)).json()
        assert booking["payment_status"] == "pending"

    async def test_gateway_declines(self, client, customer_headers, payable, monkeypatch):
        async def verify_payment(gateway_type, transaction_id):
            return PaymentResult(success=False, error_message="Card declined")

        monkeypatch.setattr(gateway_service, "verify_payment", verify_payment)
        response = await pay(client, customer_headers, payable["id"], "paypal", gateway_reference="ORDER-1")

        assert response.status_code == 402
        assert response.json()["detail"] == "Card declined"

    async def test_card_requires_gateway_reference(self, client, customer_headers, payable):
        response = await pay(client, customer_headers, payable["id"], "credit_card")
        assert response.status_code == 422

    async def test_cannot_pay_before_confirming_price(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)
        response = await pay(client, customer_headers, booking["id"], "cash")

        assert response.status_code == 400
        assert response.json()["code"] == "CONFIRMATION_REQUIRED"

    async def test_cannot_pay_without_price(self, client, customer_headers):
        booking = await create_booking(client, customer_headers)
        response = await pay(client, customer_headers, booking["id"], "cash")

        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_NOT_SET"


class TestAdminPayments:
    async def test_confirm_bank_transfer(self, client, customer_headers, admin_headers, payable):
        await pay(client, customer_headers, payable["id"], "bank_transfer")

        url = f"{API}/admin/bookings/{payable['id']}/payment/confirm"
        response = await client.post(url, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "paid"
        assert data["payment_status"] == "paid"
        assert data["requires_verification"] is False
        assert data["final_paid_amount"] == 500000

        again = await client.post(url, headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["code"] == "DUPLICATE_OPERATION"

    async def test_confirm_cash(self, client, customer_headers, admin_headers, payable):
        await pay(client, customer_headers, payable["id"], "cash")
        response = await client.post(
            f"{API}/admin/bookings/{payable['id']}/payment/confirm", headers=admin_headers
        )
        assert response.json()["status"] == "paid"

    async def test_confirm_without_submission(self, client, admin_headers, payable):
        response = await client.post(
            f"{API}/admin/bookings/{payable['id']}/payment/confirm", headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYMENT_STATUS"

    async def test_confirm_refused_for_final_booking(self, client, customer_headers, admin_headers, payable):
        await pay(client, customer_headers, payable["id"], "bank_transfer")
        base = f"{API}/admin/bookings/{payable['id']}"
        await client.patch(base, json={"status": "cancelled"}, headers=admin_headers)

        response = await client.post(f"{base}/payment/confirm", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYMENT_STATUS"

    async def test_cannot_reject_booking_with_submitted_transfer(
        self, client, customer_headers, admin_headers, payable
    ):
        await pay(client, customer_headers, payable["id"], "bank_transfer")
        base = f"{API}/admin/bookings/{payable['id']}"

        response = await client.post(f"{base}/reject", json={"reason": "No cars"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PAYMENT_IN_PROGRESS"

        response = await client.patch(base, json={"status": "rejected"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PAYMENT_IN_PROGRESS"

        confirmed = await client.post(f"{base}/payment/confirm", headers=admin_headers)
        assert confirmed.json()["status"] == "paid"

        # The paid booking can still be cancelled and refunded
        await client.patch(base, json={"status": "cancelled"}, headers=admin_headers)
        refund = await client.post(f"{base}/payment/refund", json={"reason": "No cars"}, headers=admin_headers)
        assert refund.status_code == 200
        assert refund.json()["payment_status"] == "refunded"

    async def test_confirm_retry_after_failed_commit(self, customer_headers, admin_headers, payable, monkeypatch):
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test"
        ) as client:
            submitted = await pay(client, customer_headers, payable["id"], "bank_transfer")
            assert submitted.status_code == 200

            original_commit = AsyncSession.commit
            failures = []

            async def flaky_commit(self):
                if not failures:
                    failures.append(self)
                    raise OperationalError("COMMIT", {}, Exception("connection lost"))
                return await original_commit(self)

            monkeypatch.setattr(AsyncSession, "commit", flaky_commit)
            url = f"{API}/admin/bookings/{payable['id']}/payment/confirm"

            failed = await client.post(url, headers=admin_headers)
            assert failed.status_code == 500

            retry = await client.post(url, headers=admin_headers)
            assert retry.status_code == 200
            assert retry.json()["payment_status"] == "paid"

    async def test_rejected_transfer_can_be_retried(self, client, customer_headers, admin_headers, payable):
        await pay(client, customer_headers, payable["id"], "bank_transfer")

        response = await client.post(
            f"{API}/admin/bookings/{payable['id']}/payment/reject",
            json={"reason": "Transfer not found"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "failed"

        retry = await pay(client, customer_headers, payable["id"], "cash")
        assert retry.status_code == 200
        assert retry.json()["payment_status"] == "pending"

        payments = (
            await client.get(f"{API}/payments/booking/{payable['id']}", headers=customer_headers)
        ).json()
        assert sorted(p["status"] for p in payments) == ["failed", "pending"]
        assert {p["failure_reason"] for p in payments} == {"Transfer not found", None}

    async def test_refund_cancelled_booking(self, client, customer_headers, admin_headers, payable):
        await pay(client, customer_headers, payable["id"], "cash")
        base = f"{API}/admin/bookings/{payable['id']}"
        await client.post(f"{base}/payment/confirm", headers=admin_headers)

        not_cancelled = await client.post(
            f"{base}/payment/refund", json={"reason": "Customer request"}, headers=admin_headers
        )
        assert not_cancelled.status_code == 400

        await client.patch(base, json={"status": "cancelled"}, headers=admin_headers)
        response = await client.post(
            f"{base}/payment/refund", json={"reason": "Customer request"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "refunded"

    async def test_price_frozen_after_payment(self, client, customer_headers, admin_headers, payable, gateway_ok):
        await pay(client, customer_headers, payable["id"], "credit_card", gateway_reference="pi_123")

        response = await client.post(
            f"{API}/admin/bookings/{payable['id']}/set-price", json={"price": 1}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_LOCKED"


class TestCheckoutAndWebhook:
    @pytest.fixture
    def stripe_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
        monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_123")

        async def create_payment(gateway_type, amount, currency, reference_id, description, metadata=None):
            return PaymentResult(
                success=True,
                transaction_id="pi_abc",
                amount=amount,
                currency=currency,
                raw_response={"id": "pi_abc", "client_secret": "pi_abc_secret"},
            )

        monkeypatch.setattr(gateway_service, "create_payment", create_payment)

    def _event(self, event_type: str, amount: int = 500000) -> dict:
        return {
            "type": event_type,
            "data": {"object": {"id": "pi_abc", "amount_received": amount}},
        }

    async def test_checkout_creates_pending_payment(self, client, db, customer_headers, payable, stripe_configured):
        response = await client.post(
            f"{API}/payments/checkout/credit_card",
            json={"booking_id": payable["id"]},
            headers=customer_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["client_secret"] == "pi_abc_secret"
        assert data["amount"] == 500000

        payment = (await db.execute(select(Payment))).scalar_one()
        assert payment.status == "pending"
        assert payment.gateway_transaction_id == "pi_abc"

    async def test_admin_cannot_confirm_unpaid_checkout(
        self, client, customer_headers, admin_headers, payable, stripe_configured
    ):
        await client.post(
            f"{API}/payments/checkout/credit_card",
            json={"booking_id": payable["id"]},
            headers=customer_headers,
        )

        response = await client.post(
            f"{API}/admin/bookings/{payable['id']}/payment/confirm", headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYMENT_STATUS"

        booking = (await client.get(f"{API}/bookings/{payable['id']}", headers=customer_headers)).json()
        assert booking["payment_status"] == "pending"
        assert booking["status"] == "awaiting_payment"

    async def test_checkout_unavailable_without_keys(self, client, customer_headers, payable):
        response = await client.post(
            f"{API}/payments/checkout/credit_card",
            json={"booking_id": payable["id"]},
            headers=customer_headers,
        )
        assert response.status_code == 402
        assert response.json()["code"] == "METHOD_UNAVAILABLE"

    async def test_webhook_settles_payment_once(self, client, customer_headers, payable, stripe_configured, monkeypatch):
        await client.post(
            f"{API}/payments/checkout/credit_card",
            json={"booking_id": payable["id"]},
            headers=customer_headers,
        )
        monkeypatch.setattr(
            gateway_service, "verify_webhook", lambda gateway, payload, signature: self._event("payment_intent.succeeded")
        )

        for _ in range(2):
            response = await client.post(
                f"{API}/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"}
            )
            assert response.status_code == 200

        booking = (await client.get(f"{API}/bookings/{payable['id']}", headers=customer_headers)).json()
        assert booking["status"] == "paid"
        assert booking["payment_status"] == "paid"

        history = [h["new_status"] for h in booking["history"]]
        assert history.count("paid") == 1

    async def test_webhook_failure_marks_payment_failed(self, client, db, customer_headers, payable, stripe_configured, monkeypatch):
        await client.post(
            f"{API}/payments/checkout/credit_card",
            json={"booking_id": payable["id"]},
            headers=customer_headers,
        )
        monkeypatch.setattr(
            gateway_service, "verify_webhook", lambda gateway, payload, signature: self._event("payment_intent.payment_failed")
        )
        await client.post(f"{API}/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "sig"})

        payment = (await db.execute(select(Payment))).scalar_one()
        assert payment.status == "failed"

    async def test_webhook_bad_signature(self, client, stripe_configured, monkeypatch):
        monkeypatch.setattr(gateway_service, "verify_webhook", lambda gateway, payload, signature: None)
        response = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "bad"})

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_SIGNATURE"
