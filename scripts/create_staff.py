#!/usr/bin/env python3
"""Create a driver or guide account together with its staff profile.

Usage:
    python scripts/create_staff.py driver --email ivan@volga.services --name "Ivan Petrov" --vehicle "Hyundai Solaris"
    python scripts/create_staff.py guide --email olga@volga.services --name "Olga Smirnova" --languages en ru
"""

import argparse
import asyncio

from sqlalchemy import select

from app.core.security import get_password_hash
from app.database import get_db_context
from app.models.user import Driver, Guide, User


async def create_staff(args: argparse.Namespace) -> None:
    email = args.email.lower()
    async with get_db_context() as db:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"ERROR: {email} is already registered")
            return

        first_name, _, last_name = args.name.partition(" ")
        user = User(
            email=email,
            phone=args.phone,
            password_hash=get_password_hash(args.password),
            role=args.role,
            first_name=first_name,
            last_name=last_name or None,
            is_email_verified=True,
        )
        db.add(user)
        await db.flush()

        if args.role == "driver":
            profile = Driver(
                user_id=user.id,
                full_name=args.name,
                phone=args.phone,
                vehicle_type=args.vehicle,
                vehicle_number=args.plate,
                status="active",
            )
        else:
            profile = Guide(
                user_id=user.id,
                full_name=args.name,
                phone=args.phone,
                languages=args.languages,
                status="active",
            )
        db.add(profile)

    print(f"Created {args.role}: {args.name} <{email}>")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a driver or guide")
    parser.add_argument("role", choices=["driver", "guide"])
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", default="Staff@123")
    parser.add_argument("--phone")
    parser.add_argument("--vehicle", help="Vehicle type (drivers)")
    parser.add_argument("--plate", help="Vehicle number (drivers)")
    parser.add_argument("--languages", nargs="*", default=["en", "ru"], help="Spoken languages (guides)")

    asyncio.run(create_staff(parser.parse_args()))
