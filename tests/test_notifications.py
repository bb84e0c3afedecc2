"""In-app notifications, admin broadcasts and email delivery."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from app.database import AsyncSessionLocal
from app.models.notification import Notification
from app.services.notification_service import notification_service
from tests.factories import API, create_booking, priced_booking


async def test_customer_inbox(client, customer_headers, admin_headers):
    await priced_booking(client, customer_headers, admin_headers, confirm=False)

    data = (await client.get(f"{API}/notifications/", headers=customer_headers)).json()
    assert data["total"] == 1
    assert data["unread_count"] == 1
    notification = data["notifications"][0]
    assert notification["notification_type"] == "price_set"
    assert "5000.00 RUB" in notification["body"]


async def test_mark_read(client, customer_headers, admin_headers):
    await priced_booking(client, customer_headers, admin_headers, confirm=False)
    inbox = (await client.get(f"{API}/notifications/", headers=customer_headers)).json()
    notification_id = inbox["notifications"][0]["id"]

    response = await client.patch(f"{API}/notifications/{notification_id}/read", headers=customer_headers)
    assert response.status_code == 204

    inbox = (await client.get(f"{API}/notifications/", headers=customer_headers)).json()
    assert inbox["unread_count"] == 0
    assert inbox["notifications"][0]["is_read"] is True
    unread = (await client.get(f"{API}/notifications/", params={"unread_only": True}, headers=customer_headers)).json()
    assert unread["total"] == 0


async def test_cannot_read_someone_elses_notification(client, customer_headers, admin_headers):
    await create_booking(client, customer_headers)
    admin_inbox = (await client.get(f"{API}/notifications/", headers=admin_headers)).json()
    notification_id = admin_inbox["notifications"][0]["id"]

    response = await client.patch(f"{API}/notifications/{notification_id}/read", headers=customer_headers)
    assert response.status_code == 404


async def test_read_all(client, customer_headers, admin_headers):
    booking = await priced_booking(client, customer_headers, admin_headers, confirm=False)
    await client.post(
        f"{API}/bookings/{booking['id']}/cancel", json={"reason": "Plans changed"}, headers=customer_headers
    )

    response = await client.post(f"{API}/notifications/read-all", headers=customer_headers)
    assert response.status_code == 204
    inbox = (await client.get(f"{API}/notifications/", headers=customer_headers)).json()
    assert inbox["unread_count"] == 0


async def test_broadcast_visible_to_admins_only(client, db, customer, customer_headers, admin_headers):
    await notification_service.create_notification(
        db, None, "admin", "Heads up", "Gateway outage", "system"
    )
    await db.commit()

    admin_inbox = (await client.get(f"{API}/notifications/", headers=admin_headers)).json()
    customer_inbox = (await client.get(f"{API}/notifications/", headers=customer_headers)).json()
    assert [n["title"] for n in admin_inbox["notifications"]] == ["Heads up"]
    assert customer_inbox["total"] == 0


async def test_admin_fan_out(client, db, customer_headers, admin):
    await create_booking(client, customer_headers)

    rows = (await db.execute(select(Notification).where(Notification.recipient_type == "admin"))).scalars().all()
    assert [(n.user_id, n.notification_type) for n in rows] == [(admin.id, "new_booking")]


async def test_broadcast_when_no_admins(client, db, customer_headers):
    await create_booking(client, customer_headers)

    row = (await db.execute(select(Notification))).scalar_one()
    assert row.user_id is None
    assert row.recipient_type == "admin"


class TestEmailDelivery:
    async def test_dispatch_marks_sent(self, db, customer, monkeypatch):
        sent_to = []

        async def send_email(to_email, subject, html_content, text_content=None):
            sent_to.append((to_email, subject))
            return True

        monkeypatch.setattr(notification_service, "send_email", send_email)
        await notification_service.create_notification(db, customer.id, "customer", "Hello", "Body", "system")
        await db.commit()

        assert await notification_service.dispatch_pending_emails(db) == 1
        assert sent_to == [("customer@example.com", "Hello")]
        assert await notification_service.dispatch_pending_emails(db) == 0

    async def test_delivery_survives_later_failure(self, db, customer, monkeypatch):
        calls = []

        async def send_email(to_email, subject, html_content, text_content=None):
            calls.append(subject)
            if subject == "Second":
                raise RuntimeError("worker crashed")
            return True

        monkeypatch.setattr(notification_service, "send_email", send_email)
        first = await notification_service.create_notification(db, customer.id, "customer", "First", "Body", "system")
        await db.commit()
        await notification_service.create_notification(db, customer.id, "customer", "Second", "Body", "system")
        await db.commit()

        with pytest.raises(RuntimeError):
            await notification_service.dispatch_pending_emails(db)
        await db.rollback()

        async with AsyncSessionLocal() as fresh:
            row = await fresh.get(Notification, first.id)
            assert row.email_sent is True

    async def test_undelivered_email_is_retried(self, db, customer, monkeypatch):
        async def send_email(to_email, subject, html_content, text_content=None):
            return False

        monkeypatch.setattr(notification_service, "send_email", send_email)
        notification = await notification_service.create_notification(
            db, customer.id, "customer", "Hello", "Body", "system"
        )
        await db.commit()

        assert await notification_service.dispatch_pending_emails(db) == 0
        assert notification.email_sent is False

    async def test_send_email_disabled_without_key(self):
        assert await notification_service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    def test_email_html_is_escaped(self):
        html = notification_service._generate_email_html("<b>Title</b>", "a & b")
        assert "&lt;b&gt;Title&lt;/b&gt;" in html
        assert "a &amp; b" in html


async def test_purge_read_notifications(db, customer):
    old = datetime.now(UTC) - timedelta(days=120)
    db.add_all(
        [
            Notification(user_id=customer.id, recipient_type="customer", title="old read",
                         body="-", notification_type="system", is_read=True, created_at=old),
            Notification(user_id=customer.id, recipient_type="customer", title="old unread",
                         body="-", notification_type="system", is_read=False, created_at=old),
            Notification(user_id=customer.id, recipient_type="customer", title="new read",
                         body="-", notification_type="system", is_read=True),
        ]
    )
    await db.commit()

    assert await notification_service.purge_read_notifications(db, older_than_days=90) == 1
    await db.commit()
    titles = {n.title for n in (await db.execute(select(Notification))).scalars().all()}
    assert titles == {"old unread", "new read"}
