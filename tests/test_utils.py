"""Booking numbers, transaction ids and form validation helpers."""

import re
from datetime import date

from app.utils.booking_number import generate_booking_number, generate_transaction_id
from app.utils.validators import find_date_error, humanize_field, is_missing, parse_detail_date

TODAY = date(2026, 10, 19)


async def test_booking_number_format(db):
    number = await generate_booking_number(db)
    assert re.fullmatch(r"VS-[A-Z0-9]{6}", number)


def test_transaction_id_format():
    tx = generate_transaction_id("bank_transfer", "1a2b3c4d-0000-0000-0000-000000000000")
    assert re.fullmatch(r"BANK_TRANSFER-\d{13}-1a2b3c4d", tx)


def test_parse_detail_date():
    assert parse_detail_date("2026-11-01") == date(2026, 11, 1)
    assert parse_detail_date("2026-11-01T10:00:00Z") == date(2026, 11, 1)
    assert parse_detail_date("tomorrow") is None
    assert parse_detail_date(42) is None


def test_humanize_field():
    assert humanize_field("pickupDate") == "Pickup Date"
    assert humanize_field("checkIn") == "Check In"


def test_past_date_is_rejected():
    assert find_date_error({"pickupDate": "2026-10-18"}, TODAY) == "Pickup Date cannot be in the past"


def test_today_is_accepted():
    assert find_date_error({"pickupDate": "2026-10-19"}, TODAY) is None


def test_check_out_must_follow_check_in():
    details = {"checkIn": "2026-11-05", "checkOut": "2026-11-05"}
    assert find_date_error(details, TODAY) == "Check-out date must be after check-in date"
    details["checkOut"] = "2026-11-06"
    assert find_date_error(details, TODAY) is None


def test_is_missing():
    assert is_missing(None)
    assert is_missing("  ")
    assert is_missing([])
    assert not is_missing(0)
    assert not is_missing(False)
    assert not is_missing("x")
