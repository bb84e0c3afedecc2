#!/usr/bin/env python3
"""Seed the service catalog. Existing service types are left untouched."""

import asyncio

from sqlalchemy import select

from app.database import get_db_context
from app.models.service import Service, ServiceInput

CATALOG = [
    {
        "service_type": "transfer",
        "name": "Airport Transfer",
        "description": "Private car between the airport and your hotel.",
        "inputs": [
            ("pickupLocation", "Pickup Location", "text", True),
            ("dropoffLocation", "Drop-off Location", "text", True),
            ("pickupDate", "Pickup Date", "date", True),
            ("pickupTime", "Pickup Time", "text", True),
            ("passengers", "Passengers", "number", True),
            ("flightNumber", "Flight Number", "text", False),
        ],
    },
    {
        "service_type": "tour",
        "name": "Guided City Tour",
        "description": "A day around the city with a licensed guide.",
        "inputs": [
            ("tourDate", "Tour Date", "date", True),
            ("participants", "Participants", "number", True),
            ("language", "Tour Language", "select", True),
        ],
    },
    {
        "service_type": "hotel",
        "name": "Hotel Reservation",
        "description": "We find and book a hotel that fits your trip.",
        "inputs": [
            ("city", "City", "text", True),
            ("checkIn", "Check-in Date", "date", True),
            ("checkOut", "Check-out Date", "date", True),
            ("guests", "Guests", "number", True),
        ],
    },
    {
        "service_type": "event",
        "name": "Event Tickets",
        "description": "Theatre, concerts and sports tickets.",
        "inputs": [
            ("eventName", "Event", "text", True),
            ("eventDate", "Event Date", "date", True),
            ("tickets", "Tickets", "number", True),
        ],
    },
]

LANGUAGE_OPTIONS = ["en", "ru", "ar"]


async def seed() -> None:
    async with get_db_context() as db:
        result = await db.execute(select(Service.service_type))
        existing = set(result.scalars().all())

        for order, entry in enumerate(CATALOG):
            if entry["service_type"] in existing:
                print(f"Skipping {entry['service_type']} (exists)")
                continue
            service = Service(
                service_type=entry["service_type"],
                name=entry["name"],
                description=entry["description"],
                sort_order=order,
                inputs=[
                    ServiceInput(
                        key=key,
                        label=label,
                        input_type=input_type,
                        options=LANGUAGE_OPTIONS if input_type == "select" else None,
                        is_required=required,
                        sort_order=i,
                    )
                    for i, (key, label, input_type, required) in enumerate(entry["inputs"])
                ],
            )
            db.add(service)
            print(f"Added {entry['service_type']}")


if __name__ == "__main__":
    asyncio.run(seed())
