#!/usr/bin/env python3
"""
Log in to the Volga Services API and store the access token.

Usage:
    python scripts/auth_login.py
    python scripts/auth_login.py --email admin@volga.services --password Admin@123
"""

import argparse
import os
import sys
from pathlib import Path

import httpx

BASE_URL = os.environ.get("API_URL", "http://localhost:8000")
TOKEN_FILE = Path(__file__).parent.parent / ".token"


def login(email: str, password: str) -> str:
    response = httpx.post(
        f"{BASE_URL}/api/v1/auth/login",
        json={"email": email, "password": password},
        timeout=10.0,
    )
    if response.status_code != 200:
        print(f"ERROR: Login failed with status {response.status_code}")
        print(response.text)
        sys.exit(1)

    data = response.json()
    TOKEN_FILE.write_text(data["access_token"])
    print(f"Logged in as {email}")
    return data["access_token"]


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Log in to the API")
    parser.add_argument("--email", default="customer@volga.services")
    parser.add_argument("--password", default="Test@1234")
    args = parser.parse_args()

    login(args.email, args.password)
