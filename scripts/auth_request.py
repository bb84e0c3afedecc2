#!/usr/bin/env python3
"""
Make authenticated API requests using the stored token.

Usage:
    python scripts/auth_request.py GET /api/v1/users/me
    python scripts/auth_request.py POST /api/v1/bookings/<id>/confirm-price
    python scripts/auth_request.py POST /api/v1/admin/bookings/<id>/set-price --data '{"price": 500000}'
"""

import argparse
import json
import os
import sys
from pathlib import Path

import httpx

BASE_URL = os.environ.get("API_URL", "http://localhost:8000")
TOKEN_FILE = Path(__file__).parent.parent / ".token"
METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def get_token() -> str:
    token = TOKEN_FILE.read_text().strip() if TOKEN_FILE.exists() else ""
    if not token:
        print("ERROR: No token found. Run auth_login.py first.")
        sys.exit(1)
    return token


def request(method: str, endpoint: str, data: str | None = None) -> None:
    if method not in METHODS:
        print(f"ERROR: Unknown method {method}")
        sys.exit(1)

    body = json.loads(data) if data else None
    response = httpx.request(
        method,
        f"{BASE_URL}{endpoint}",
        headers={"Authorization": f"Bearer {get_token()}"},
        json=body if method != "GET" else None,
        timeout=10.0,
        follow_redirects=True,
    )

    print(f"Status: {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except json.JSONDecodeError:
        print(response.text)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Make an authenticated API request")
    parser.add_argument("method", nargs="?", default="GET")
    parser.add_argument("endpoint", nargs="?", default="/api/v1/users/me")
    parser.add_argument("--data", "-d", help="JSON request body")
    args = parser.parse_args()

    request(args.method.upper(), args.endpoint, args.data)
