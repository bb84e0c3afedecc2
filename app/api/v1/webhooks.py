"""Webhook endpoints for payment gateways."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.config import settings
from app.core.exceptions import ExternalServiceError, ValidationError
from app.services.gateway_service import gateway_service
from app.services.payment_service import payment_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> dict:
    """Settle card payments from Stripe PaymentIntent events."""
    if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
        raise ExternalServiceError("stripe", "webhooks are not configured")

    payload = await request.body()
    event = gateway_service.verify_webhook("stripe", payload, stripe_signature or "")
    if event is None:
        raise ValidationError("Invalid webhook signature", code="INVALID_SIGNATURE")

    await handle_stripe_event(db, event)
    return {"received": True}


async def handle_stripe_event(db: AsyncSession, event: dict) -> None:
    """Apply a verified Stripe event. Unknown event types are ignored."""
    event_type = event["type"]
    intent = event["data"]["object"]
    logger.info(f"Stripe event {event_type} for {intent.get('id')}")

    if event_type == "payment_intent.succeeded":
        await payment_service.settle_from_webhook(
            db, intent["id"], intent.get("amount_received")
        )
    elif event_type == "payment_intent.payment_failed":
        error = intent.get("last_payment_error") or {}
        await payment_service.fail_from_webhook(db, intent["id"], error.get("message"))
