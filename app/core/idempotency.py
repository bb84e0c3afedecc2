"""Idempotency protection for admin payment operations."""

import hashlib
import json
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import status

from app.core.exceptions import AppException


class IdempotencyStore:
    """In-memory idempotency key store with a TTL.

    Keys only guard against double submits within one API process.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24)):
        self._keys: dict[str, dict] = {}
        self._ttl = ttl

    def _cleanup_expired(self) -> None:
        now = datetime.now(UTC)
        expired = [k for k, v in self._keys.items() if v["expires_at"] < now]
        for k in expired:
            del self._keys[k]

    def get(self, key: str) -> dict | None:
        """Get stored result for idempotency key."""
        self._cleanup_expired()
        entry = self._keys.get(key)
        return entry["result"] if entry else None

    def set(self, key: str, result: dict) -> None:
        self._keys[key] = {
            "result": result,
            "expires_at": datetime.now(UTC) + self._ttl,
        }

    def clear(self) -> None:
        self._keys.clear()


idempotency_store = IdempotencyStore()


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "payment_confirm", "payment_refund")
        entity_id: Booking the operation applies to
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True)
    return hashlib.sha256(key_str.encode()).hexdigest()


class IdempotencyError(AppException):
    """Raised when a duplicate operation is detected."""

    def __init__(self, operation: str, entity_id: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Duplicate {operation} operation for booking {entity_id}. "
                "This operation was already processed."
            ),
            code="DUPLICATE_OPERATION",
        )


def ensure_not_processed(operation: str, entity_id: UUID | str, params: dict | None = None) -> str:
    """Raise if the operation already ran; otherwise return its key."""
    key = generate_idempotency_key(operation, entity_id, params)
    if idempotency_store.get(key) is not None:
        raise IdempotencyError(operation, str(entity_id))
    return key


def mark_processed(key: str, result: dict) -> None:
    idempotency_store.set(key, {**result, "at": datetime.now(UTC).isoformat()})
