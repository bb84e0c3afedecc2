#!/usr/bin/env python3
"""Create (or reset) an admin account."""

import argparse
import asyncio

from sqlalchemy import select

from app.core.security import get_password_hash
from app.database import get_db_context
from app.models.user import User


async def create_admin(email: str, password: str, first_name: str, last_name: str) -> None:
    """Create the admin, or promote and reset an existing account with that email."""
    email = email.lower()
    async with get_db_context() as db:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            user = User(email=email, role="admin", is_email_verified=True)
            db.add(user)
            action = "Created"
        else:
            user.role = "admin"
            action = "Updated"

        user.password_hash = get_password_hash(password)
        user.first_name = first_name
        user.last_name = last_name
        user.is_active = True

    print(f"{action} admin user: {email}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", default="admin@volga.services")
    parser.add_argument("--password", default="Admin@123")
    parser.add_argument("--first-name", default="Volga")
    parser.add_argument("--last-name", default="Admin")
    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.first_name, args.last_name))
