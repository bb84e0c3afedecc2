"""Booking intake and the customer/admin price-lock workflow."""

from sqlalchemy import select

from app.models.booking import BookingStatusHistory, BookingUserInput
from app.models.notification import Notification
from app.models.user import User
from tests.factories import API, auth_headers, booking_payload, create_booking, make_user, priced_booking


class TestCreateBooking:
    async def test_creates_unpriced_booking_under_review(
        self, client, db, customer, customer_headers, admin, transfer_service
    ):
        booking = await create_booking(client, customer_headers)

        assert booking["status"] == "under_review"
        assert booking["status_label"] == "Under review"
        assert booking["payment_status"] == "pending"
        assert booking["booking_number"].startswith("VS-")
        assert booking["price"]["admin_price"] is None
        assert booking["price"]["locked"] is False
        assert booking["price"]["currency"] == "RUB"
        # Email falls back to the account email
        assert booking["user_info"]["email"] == customer.email
        assert booking["service_details"]["_service_snapshot"]["name"] == "Airport Transfer"

        inputs = (await db.execute(select(BookingUserInput))).scalars().all()
        assert {i.input_key for i in inputs} == {"pickupLocation", "pickupDate", "passengers"}

        history = (await db.execute(select(BookingStatusHistory))).scalars().all()
        assert [(h.old_status, h.new_status) for h in history] == [(None, "under_review")]

        notes = (await db.execute(select(Notification))).scalars().all()
        assert [(n.user_id, n.notification_type) for n in notes] == [(admin.id, "new_booking")]

    async def test_draft_does_not_notify_admins(self, client, db, customer_headers, admin):
        payload = booking_payload()
        payload["as_draft"] = True
        response = await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)

        assert response.status_code == 201
        assert response.json()["status"] == "draft"
        assert (await db.execute(select(Notification))).scalars().first() is None

    async def test_submit_draft(self, client, customer_headers):
        payload = booking_payload()
        payload["as_draft"] = True
        draft = (await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)).json()

        response = await client.post(f"{API}/bookings/{draft['id']}/submit", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "under_review"

        again = await client.post(f"{API}/bookings/{draft['id']}/submit", headers=customer_headers)
        assert again.status_code == 400

    async def test_missing_required_input(self, client, customer_headers, transfer_service):
        payload = booking_payload()
        payload["service_details"]["pickupLocation"] = "  "
        response = await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)

        assert response.status_code == 422
        assert response.json()["detail"] == "Pickup Location is required"
        assert response.json()["success"] is False

    async def test_zero_counts_as_provided(self, client, db, customer_headers, transfer_service):
        transfer_service.inputs[2].is_required = True
        await db.commit()

        await create_booking(client, customer_headers, passengers=0)

    async def test_past_date_rejected(self, client, customer_headers):
        payload = booking_payload(pickupDate="2020-01-01")
        response = await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)

        assert response.status_code == 422
        assert response.json()["detail"] == "Pickup Date cannot be in the past"

    async def test_inactive_service_rejected(self, client, db, customer_headers, transfer_service):
        transfer_service.is_active = False
        await db.commit()

        response = await client.post(f"{API}/bookings/", json=booking_payload(), headers=customer_headers)
        assert response.status_code == 422
        assert response.json()["detail"] == "This service is currently unavailable"

    async def test_unknown_service_type_is_accepted(self, client, customer_headers):
        booking = await create_booking(client, customer_headers, service_type="yacht")
        assert booking["service_type"] == "yacht"
        assert "_service_snapshot" not in booking["service_details"]

    async def test_duplicate_submission_is_blocked(self, client, customer_headers):
        await create_booking(client, customer_headers)
        response = await client.post(f"{API}/bookings/", json=booking_payload(), headers=customer_headers)

        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMITED"

    async def test_staff_cannot_book(self, client, driver, db):
        staff_user = await db.get(User, driver.user_id)
        response = await client.post(
            f"{API}/bookings/", json=booking_payload(), headers=auth_headers(staff_user)
        )
        assert response.status_code == 403

    async def test_requires_auth(self, client):
        response = await client.post(f"{API}/bookings/", json=booking_payload())
        assert response.status_code == 401


class TestCustomerAccess:
    async def test_other_customer_gets_404(self, client, db, customer_headers):
        booking = await create_booking(client, customer_headers)
        other = await make_user(db, "customer", email="other@example.com")

        response = await client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(other))
        assert response.status_code == 404

    async def test_list_filters_by_status(self, client, customer_headers, no_duplicate_window):
        await create_booking(client, customer_headers)
        payload = booking_payload()
        payload["as_draft"] = True
        await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)

        all_bookings = (await client.get(f"{API}/bookings/", headers=customer_headers)).json()
        drafts = (
            await client.get(f"{API}/bookings/", params={"status": "draft"}, headers=customer_headers)
        ).json()
        assert len(all_bookings) == 2
        assert [b["status"] for b in drafts] == ["draft"]

    async def test_detail_includes_history_and_guard(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers)

        detail = (await client.get(f"{API}/bookings/{booking['id']}", headers=customer_headers)).json()
        assert detail["status"] == "awaiting_payment"
        assert detail["payment_guard"]["can_pay"] is True
        assert detail["payment_guard"]["amount"] == 500000
        assert [h["new_status"] for h in detail["history"]][0] == "awaiting_payment"
        assert detail["driver"] is None


class TestPriceLock:
    async def test_set_price_locks_and_awaits_confirmation(self, client, db, customer, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)

        assert booking["status"] == "awaiting_customer_confirmation"
        assert booking["price"]["admin_price"] == 450000
        assert booking["price"]["tax"] == 50000
        assert booking["price"]["total"] == 500000
        assert booking["price"]["locked"] is True

        notes = (
            await db.execute(select(Notification).where(Notification.user_id == customer.id))
        ).scalars().all()
        assert [n.notification_type for n in notes] == ["price_set"]

        guard = (
            await client.get(f"{API}/bookings/{booking['id']}/payment-guard", headers=customer_headers)
        ).json()
        assert guard["can_pay"] is False
        assert guard["code"] == "CONFIRMATION_REQUIRED"

    async def test_confirm_price_makes_booking_payable(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers)

        assert booking["status"] == "awaiting_payment"
        guard = (
            await client.get(f"{API}/bookings/{booking['id']}/payment-guard", headers=customer_headers)
        ).json()
        assert guard == {
            "can_pay": True,
            "subtotal": 450000,
            "tax": 50000,
            "amount": 500000,
            "currency": "RUB",
            "locked": True,
            "reason": None,
            "code": None,
        }

    async def test_confirm_requires_locked_price(self, client, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        await client.post(
            f"{API}/admin/bookings/{booking['id']}/set-price",
            json={"price": 300000, "lock": False},
            headers=admin_headers,
        )

        response = await client.post(f"{API}/bookings/{booking['id']}/confirm-price", headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_NOT_LOCKED"

    async def test_confirm_before_price_is_set(self, client, customer_headers):
        booking = await create_booking(client, customer_headers)
        response = await client.post(f"{API}/bookings/{booking['id']}/confirm-price", headers=customer_headers)
        assert response.status_code == 400

    async def test_locked_price_cannot_be_reset(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)
        url = f"{API}/admin/bookings/{booking['id']}"

        response = await client.post(f"{url}/set-price", json={"price": 1000}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_LOCKED"

        assert (await client.post(f"{url}/unlock-price", headers=admin_headers)).status_code == 200
        response = await client.post(f"{url}/set-price", json={"price": 1000}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["price"]["admin_price"] == 1000

    async def test_price_cannot_change_after_confirmation(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers)
        url = f"{API}/admin/bookings/{booking['id']}"

        assert (await client.post(f"{url}/unlock-price", headers=admin_headers)).json()["code"] == "PRICE_LOCKED"
        response = await client.patch(url, json={"admin_price": 1}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_LOCKED"

    async def test_lock_requires_price(self, client, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        response = await client.post(
            f"{API}/admin/bookings/{booking['id']}/lock-price", headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "PRICE_NOT_SET"

    async def test_proposal_accepted_by_admin(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)

        response = await client.post(
            f"{API}/bookings/{booking['id']}/propose-price",
            json={"amount": 400000, "note": "Found it cheaper"},
            headers=customer_headers,
        )
        assert response.status_code == 200
        price = response.json()["price"]
        assert price["customer_proposed_price"] == 400000
        assert price["locked"] is False

        response = await client.post(
            f"{API}/admin/bookings/{booking['id']}/accept-proposal", headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "awaiting_payment"
        assert data["price"]["admin_price"] == 400000
        assert data["price"]["customer_proposed_price"] is None
        assert data["price"]["locked"] is True
        assert data["price"]["total"] == 450000

    async def test_accept_without_proposal(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)
        response = await client.post(
            f"{API}/admin/bookings/{booking['id']}/accept-proposal", headers=admin_headers
        )
        assert response.status_code == 422
        assert response.json()["code"] == "NO_PROPOSAL"

    async def test_set_price_on_draft_moves_it_forward(self, client, customer_headers, admin_headers):
        payload = booking_payload()
        payload["as_draft"] = True
        draft = (await client.post(f"{API}/bookings/", json=payload, headers=customer_headers)).json()

        response = await client.post(
            f"{API}/admin/bookings/{draft['id']}/set-price", json={"price": 1000}, headers=admin_headers
        )
        assert response.json()["status"] == "awaiting_customer_confirmation"


class TestCancelAndReject:
    async def test_customer_cancel(self, client, customer_headers):
        booking = await create_booking(client, customer_headers)

        response = await client.post(
            f"{API}/bookings/{booking['id']}/cancel",
            json={"reason": "Plans changed"},
            headers=customer_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Plans changed"
        assert data["customer_notes"].endswith("[Cancelled: Plans changed]")

    async def test_cannot_cancel_after_rejection(self, client, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        response = await client.post(
            f"{API}/admin/bookings/{booking['id']}/reject",
            json={"reason": "No cars available"},
            headers=admin_headers,
        )
        assert response.json()["status"] == "rejected"
        assert response.json()["admin_notes"] == "Rejected: No cars available"

        response = await client.post(
            f"{API}/bookings/{booking['id']}/cancel", json={"reason": "x"}, headers=customer_headers
        )
        assert response.status_code == 400


class TestAdminBookings:
    async def test_customer_cannot_use_admin_routes(self, client, customer_headers):
        response = await client.get(f"{API}/admin/bookings", headers=customer_headers)
        assert response.status_code == 403

    async def test_list_and_filter(self, client, customer_headers, admin_headers, no_duplicate_window):
        await create_booking(client, customer_headers)
        await priced_booking(client, customer_headers, admin_headers)

        data = (await client.get(f"{API}/admin/bookings", headers=admin_headers)).json()
        assert data["total"] == 2

        data = (
            await client.get(
                f"{API}/admin/bookings", params={"status": "awaiting_payment"}, headers=admin_headers
            )
        ).json()
        assert data["total"] == 1
        assert data["bookings"][0]["status"] == "awaiting_payment"

    async def test_invalid_status_change(self, client, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        response = await client.patch(
            f"{API}/admin/bookings/{booking['id']}", json={"status": "completed"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_status_change_notifies_customer(self, client, db, customer, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        response = await client.patch(
            f"{API}/admin/bookings/{booking['id']}",
            json={"status": "cancelled", "admin_notes": "Duplicate"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["admin_notes"] == "Duplicate"

        notes = (
            await db.execute(select(Notification).where(Notification.user_id == customer.id))
        ).scalars().all()
        assert [n.notification_type for n in notes] == ["booking_status_changed"]

    async def test_delete(self, client, customer_headers, admin_headers):
        booking = await create_booking(client, customer_headers)
        url = f"{API}/admin/bookings/{booking['id']}"

        assert (await client.delete(url, headers=admin_headers)).status_code == 204
        assert (await client.get(url, headers=admin_headers)).status_code == 404

    async def test_audit_trail(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers)

        data = (
            await client.get(
                f"{API}/admin/audit-logs",
                params={"resource_id": booking["id"]},
                headers=admin_headers,
            )
        ).json()
        actions = {log["action"] for log in data["logs"]}
        assert {"booking_created", "price_set", "price_confirmed"} <= actions
