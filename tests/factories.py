"""Test data helpers shared across test modules."""

from httpx import AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import create_tokens, get_password_hash
from app.models.user import User

API = settings.api_prefix


async def make_user(db: AsyncSession, role: str = "customer", email: str | None = None) -> User:
    user = User(
        email=email or f"{role}@example.com",
        password_hash=get_password_hash("Test@1234"),
        role=role,
        first_name=role.capitalize(),
        last_name="Tester",
        phone="+79001234567",
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    tokens = create_tokens(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


def booking_payload(service_type: str = "transfer", **details) -> dict:
    return {
        "service_type": service_type,
        "service_details": {
            "pickupLocation": "Sheremetyevo SVO",
            "pickupDate": "2099-06-01",
            "passengers": 2,
            **details,
        },
        "user_info": {"full_name": "Anna Ivanova", "phone": "+79001112233"},
    }


async def create_booking(client: AsyncClient, headers: dict, **kwargs) -> dict:
    response = await client.post(f"{API}/bookings/", json=booking_payload(**kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def priced_booking(
    client: AsyncClient,
    customer_headers: dict,
    admin_headers: dict,
    price: int = 450000,
    tax: int = 50000,
    confirm: bool = True,
) -> dict:
    """A booking with a locked admin price, confirmed by the customer when ``confirm``."""
    booking = await create_booking(client, customer_headers)
    response = await client.post(
        f"{API}/admin/bookings/{booking['id']}/set-price",
        json={"price": price, "tax": tax},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    if confirm:
        response = await client.post(
            f"{API}/bookings/{booking['id']}/confirm-price", headers=customer_headers
        )
        assert response.status_code == 200, response.text
    return response.json()


async def pay(client: AsyncClient, headers: dict, booking_id: str, method: str, **extra) -> Response:
    return await client.post(
        f"{API}/payments/process",
        json={"booking_id": booking_id, "payment_method": method, **extra},
        headers=headers,
    )
