"""Review prompts, customer reviews, moderation and staff ratings."""

import pytest

from app.config import settings
from app.models.user import User
from tests.factories import API, auth_headers, make_user, pay, priced_booking


@pytest.fixture(autouse=True)
def prompt_immediately(monkeypatch):
    monkeypatch.setattr(settings, "review_prompt_delay_hours", 0)


async def _completed_booking(client, customer_headers, admin_headers, driver=None) -> dict:
    booking = await priced_booking(client, customer_headers, admin_headers)
    url = f"{API}/admin/bookings/{booking['id']}"
    await pay(client, customer_headers, booking["id"], "cash")
    await client.post(f"{url}/payment/confirm", headers=admin_headers)
    if driver is not None:
        await client.post(f"{url}/assign-driver", json={"driver_id": str(driver.id)}, headers=admin_headers)
    await client.patch(url, json={"status": "in_progress"}, headers=admin_headers)
    response = await client.post(f"{url}/complete", headers=admin_headers)
    assert response.json()["status"] == "completed", response.text
    return response.json()


async def _review(client, headers, booking_id, rating=5, **extra):
    return await client.post(
        f"{API}/reviews/",
        json={"booking_id": booking_id, "overall_rating": rating, **extra},
        headers=headers,
    )


@pytest.fixture
async def completed(client, customer_headers, admin_headers, driver) -> dict:
    return await _completed_booking(client, customer_headers, admin_headers, driver)


class TestSubmit:
    async def test_review_attributed_to_assigned_driver(self, client, customer_headers, driver, completed):
        response = await _review(
            client, customer_headers, completed["id"], 5,
            driver_rating=4, feedback_text="Smooth ride", positive_aspects=["punctual"],
        )

        assert response.status_code == 201
        data = response.json()
        assert data["driver_id"] == str(driver.id)
        assert data["guide_id"] is None
        assert data["service_type"] == "transfer"
        assert data["driver_rating"] == 4
        assert data["status"] == "pending"

        mine = (await client.get(f"{API}/reviews/mine", headers=customer_headers)).json()
        assert [r["id"] for r in mine] == [data["id"]]

    async def test_one_review_per_booking(self, client, customer_headers, completed):
        await _review(client, customer_headers, completed["id"])
        again = await _review(client, customer_headers, completed["id"])

        assert again.status_code == 422
        assert again.json()["code"] == "REVIEW_EXISTS"

    async def test_only_completed_bookings(self, client, customer_headers, admin_headers):
        booking = await priced_booking(client, customer_headers, admin_headers)
        response = await _review(client, customer_headers, booking["id"])

        assert response.status_code == 400
        assert response.json()["code"] == "BOOKING_NOT_COMPLETED"

    async def test_only_the_booking_owner(self, client, db, completed):
        other = await make_user(db, "customer", email="other@example.com")
        response = await _review(client, auth_headers(other), completed["id"])
        assert response.status_code == 404

    async def test_staff_cannot_review(self, client, db, completed, driver):
        driver_user = await db.get(User, driver.user_id)
        response = await _review(client, auth_headers(driver_user), completed["id"])
        assert response.status_code == 403

    async def test_rating_out_of_range(self, client, customer_headers, completed):
        response = await _review(client, customer_headers, completed["id"], rating=6)
        assert response.status_code == 422

    async def test_low_rating_queues_followup(self, client, customer_headers, admin_headers, completed):
        await _review(client, customer_headers, completed["id"], rating=2, improvement_areas=["late"])

        data = (await client.get(f"{API}/admin/reviews", params={"needs_followup": True}, headers=admin_headers)).json()
        assert data["total"] == 1
        assert data["pending_followups"] == 1
        review = data["reviews"][0]
        assert review["requires_followup"] is True
        assert review["followup_type"] == "low_rating"

        inbox = (await client.get(f"{API}/notifications/", headers=admin_headers)).json()
        assert "review_needs_followup" in {n["notification_type"] for n in inbox["notifications"]}


class TestPrompts:
    async def test_completion_schedules_prompt(self, client, customer_headers, completed):
        prompts = (await client.get(f"{API}/reviews/prompts", headers=customer_headers)).json()

        assert len(prompts) == 1
        assert prompts[0]["booking_id"] == completed["id"]
        assert prompts[0]["status"] == "sent"
        assert prompts[0]["sent_at"] is not None

    async def test_prompt_not_due_yet(self, client, customer_headers, admin_headers, monkeypatch):
        monkeypatch.setattr(settings, "review_prompt_delay_hours", 2)
        await _completed_booking(client, customer_headers, admin_headers)

        prompts = (await client.get(f"{API}/reviews/prompts", headers=customer_headers)).json()
        assert prompts == []

    async def test_review_closes_prompt(self, client, customer_headers, completed):
        await _review(client, customer_headers, completed["id"])
        prompts = (await client.get(f"{API}/reviews/prompts", headers=customer_headers)).json()
        assert prompts == []

    async def test_dismiss_prompt(self, client, customer_headers, completed):
        prompt = (await client.get(f"{API}/reviews/prompts", headers=customer_headers)).json()[0]
        url = f"{API}/reviews/prompts/{prompt['id']}/dismiss"

        response = await client.post(url, headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "dismissed"
        assert (await client.get(f"{API}/reviews/prompts", headers=customer_headers)).json() == []

        again = await client.post(url, headers=customer_headers)
        assert again.status_code == 422
        assert again.json()["code"] == "PROMPT_CLOSED"


class TestModeration:
    async def test_flag_then_approve(self, client, customer_headers, admin_headers, completed):
        review = (await _review(client, customer_headers, completed["id"])).json()
        url = f"{API}/admin/reviews/{review['id']}/moderate"

        flagged = (await client.post(url, json={"action": "flag"}, headers=admin_headers)).json()
        assert flagged["status"] == "flagged"
        assert flagged["is_flagged"] is True
        assert flagged["flag_reason"] == "Manually flagged by admin"

        listed = (await client.get(f"{API}/admin/reviews", params={"flagged": True}, headers=admin_headers)).json()
        assert listed["total"] == 1

        approved = (await client.post(url, json={"action": "approve"}, headers=admin_headers)).json()
        assert approved["status"] == "approved"
        assert approved["is_flagged"] is False
        assert approved["flag_reason"] is None

    async def test_unknown_action(self, client, customer_headers, admin_headers, completed):
        review = (await _review(client, customer_headers, completed["id"])).json()
        response = await client.post(
            f"{API}/admin/reviews/{review['id']}/moderate", json={"action": "delete"}, headers=admin_headers
        )
        assert response.status_code == 422

    async def test_complete_followup(self, client, customer_headers, admin_headers, completed):
        review = (await _review(client, customer_headers, completed["id"], rating=1)).json()
        url = f"{API}/admin/reviews/{review['id']}/followup"

        response = await client.post(url, json={"notes": "Called the customer, refunded the fuel fee"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["followup_completed"] is True

        again = await client.post(url, json={"notes": "again"}, headers=admin_headers)
        assert again.json()["code"] == "FOLLOWUP_COMPLETED"

    async def test_followup_requires_low_rating(self, client, customer_headers, admin_headers, completed):
        review = (await _review(client, customer_headers, completed["id"], rating=5)).json()
        response = await client.post(
            f"{API}/admin/reviews/{review['id']}/followup", json={"notes": "n/a"}, headers=admin_headers
        )
        assert response.json()["code"] == "NO_FOLLOWUP"

    async def test_customers_cannot_moderate(self, client, customer_headers, completed):
        review = (await _review(client, customer_headers, completed["id"])).json()
        response = await client.post(
            f"{API}/admin/reviews/{review['id']}/moderate", json={"action": "hide"}, headers=customer_headers
        )
        assert response.status_code == 403


class TestRatingStats:
    async def test_driver_stats(self, client, customer_headers, admin_headers, driver, no_duplicate_window):
        first = await _completed_booking(client, customer_headers, admin_headers, driver)
        second = await _completed_booking(client, customer_headers, admin_headers, driver)
        await _review(client, customer_headers, first["id"], 5, driver_rating=5, punctuality_rating=4)
        await _review(client, customer_headers, second["id"], 2, driver_rating=3)

        stats = (await client.get(f"{API}/admin/drivers/ratings", headers=admin_headers)).json()

        assert len(stats) == 1
        row = stats[0]
        assert row["staff_id"] == str(driver.id)
        assert row["total_reviews"] == 2
        assert row["avg_overall"] == 3.5
        assert row["avg_driver"] == 4.0
        assert row["avg_punctuality"] == 4.0
        assert row["low_rating_count"] == 1
        assert row["high_rating_count"] == 1

    async def test_hidden_reviews_excluded(self, client, customer_headers, admin_headers, driver, completed):
        review = (await _review(client, customer_headers, completed["id"], 1)).json()
        await client.post(
            f"{API}/admin/reviews/{review['id']}/moderate", json={"action": "hide"}, headers=admin_headers
        )

        stats = (await client.get(f"{API}/admin/drivers/ratings", headers=admin_headers)).json()
        assert stats == []

    async def test_guide_stats_empty(self, client, admin_headers, completed):
        assert (await client.get(f"{API}/admin/guides/ratings", headers=admin_headers)).json() == []
