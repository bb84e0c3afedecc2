#!/usr/bin/env python3
"""
End-to-end price lock and payment flow against a running API.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_book_and_pay.py --pickup-date 2026-12-01 --price 450000
    python scripts/flow_book_and_pay.py --pickup-date 2026-12-01 --price 450000 --driver-id <UUID>

Flow:
    1. Login as customer, create a transfer booking
    2. Login as admin, set and lock the price
    3. Customer confirms the price and checks the payment guard
    4. Customer pays by bank transfer
    5. Admin verifies the transfer
    6. Admin assigns a driver (optional), starts and completes the trip
"""

import argparse
import json
import os
import sys

import httpx

BASE_URL = os.environ.get("API_URL", "http://localhost:8000")

CUSTOMER_EMAIL = "customer@volga.services"
CUSTOMER_PASSWORD = "Test@1234"
ADMIN_EMAIL = "admin@volga.services"
ADMIN_PASSWORD = "Admin@123"


def login(email: str, password: str) -> str:
    response = httpx.post(
        f"{BASE_URL}/api/v1/auth/login",
        json={"email": email, "password": password},
        timeout=10.0,
    )
    if response.status_code != 200:
        print(f"ERROR: Login failed for {email}: {response.status_code}")
        print(response.text)
        sys.exit(1)
    return response.json()["access_token"]


def call(token: str, method: str, endpoint: str, data: dict | None = None, fields: list[str] | None = None) -> dict:
    """Make an authenticated request, print the result and exit on error."""
    response = httpx.request(
        method,
        f"{BASE_URL}/api/v1{endpoint}",
        headers={"Authorization": f"Bearer {token}"},
        json=data if method != "GET" else None,
        timeout=10.0,
        follow_redirects=True,
    )
    body = response.json() if response.text else {}
    if response.status_code >= 400:
        print(f"ERROR ({response.status_code}): {json.dumps(body, indent=2)}")
        sys.exit(1)

    shown = {k: body.get(k) for k in fields if k in body} if fields else body
    print(f"Status: {response.status_code}")
    print(json.dumps(shown, indent=2, ensure_ascii=False))
    return body


def print_step(step: int, title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"STEP {step}: {title}")
    print("=" * 60)


def main() -> None:
    parser = argparse.ArgumentParser(description="Booking, price lock and payment flow")
    parser.add_argument("--pickup-date", required=True, help="Pickup date (YYYY-MM-DD)")
    parser.add_argument("--price", type=int, required=True, help="Price in minor units (kopecks)")
    parser.add_argument("--tax", type=int, default=0)
    parser.add_argument("--driver-id", help="Driver profile UUID to assign")
    args = parser.parse_args()

    booking_fields = ["id", "booking_number", "status", "payment_status", "price"]

    print_step(1, "Customer creates a transfer booking")
    customer = login(CUSTOMER_EMAIL, CUSTOMER_PASSWORD)
    booking = call(customer, "POST", "/bookings", {
        "service_type": "transfer",
        "service_details": {
            "pickupLocation": "Sheremetyevo SVO",
            "dropoffLocation": "Hotel Metropol",
            "pickupDate": args.pickup_date,
            "pickupTime": "14:30",
            "passengers": 2,
        },
        "user_info": {"full_name": "Test Customer", "phone": "+79001234567"},
    }, booking_fields)
    booking_id = booking["id"]

    print_step(2, "Admin sets and locks the price")
    admin = login(ADMIN_EMAIL, ADMIN_PASSWORD)
    call(admin, "POST", f"/admin/bookings/{booking_id}/set-price", {
        "price": args.price,
        "tax": args.tax,
        "lock": True,
    }, booking_fields)

    print_step(3, "Customer confirms the price")
    call(customer, "POST", f"/bookings/{booking_id}/confirm-price", fields=booking_fields)
    call(customer, "GET", f"/bookings/{booking_id}/payment-guard")

    print_step(4, "Customer pays by bank transfer")
    call(customer, "GET", f"/payments/prepare/{booking_id}", fields=["payment_methods"])
    call(customer, "POST", "/payments/process", {
        "booking_id": booking_id,
        "payment_method": "bank_transfer",
    }, ["status", "payment_status", "transaction_id", "amount", "message"])

    print_step(5, "Admin verifies the transfer")
    call(admin, "POST", f"/admin/bookings/{booking_id}/payment/confirm", fields=booking_fields)

    print_step(6, "Assign driver and complete")
    if args.driver_id:
        call(admin, "POST", f"/admin/bookings/{booking_id}/assign-driver", {
            "driver_id": args.driver_id,
            "show_to_customer": True,
        }, ["assigned_driver_id", "driver_response"])
    call(admin, "PATCH", f"/admin/bookings/{booking_id}", {"status": "in_progress"}, booking_fields)
    final = call(admin, "POST", f"/admin/bookings/{booking_id}/complete", fields=booking_fields)

    print("\n" + "=" * 60)
    print(f"FLOW COMPLETE: {final['booking_number']} is {final['status']}")
    print("=" * 60)


if __name__ == "__main__":
    main()
