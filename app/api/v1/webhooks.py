"""Webhook endpoints for the payment processor."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status

from app.api.deps import get_booking_service, get_gateway_service, get_processed_event_store
from app.core.exceptions import WebhookSignatureError
from app.core.idempotency import ProcessedEventStore
from app.schemas.payment import WebhookAck
from app.services.booking_service import BookingService
from app.services.gateway_service import GatewayService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    gateway: Annotated[GatewayService, Depends(get_gateway_service)],
    service: Annotated[BookingService, Depends(get_booking_service)],
    events: Annotated[ProcessedEventStore, Depends(get_processed_event_store)],
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> WebhookAck:
    """Handle signed Stripe events. Nothing is mutated unless the signature checks out."""
    # Get raw body for signature verification
    payload = await request.body()
    event = gateway.verify_webhook(payload, stripe_signature or "")
    if event is None:
        raise WebhookSignatureError()

    event_id = event.get("id")
    if event_id and await events.is_processed(event_id):
        logger.info(f"Duplicate webhook event {event_id} ignored")
        return WebhookAck(duplicate=True)

    await _handle_stripe_event(service, event)

    if event_id:
        await events.mark_processed(event_id)
    return WebhookAck()


async def _handle_stripe_event(service: BookingService, event: dict) -> None:
    """Route a verified event to the booking lifecycle."""
    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        if data.get("payment_status", "paid") != "paid":
            logger.info(f"Checkout session {data.get('id')} completed without payment yet")
            return
        await service.complete_payment(data)
    elif event_type == "checkout.session.async_payment_succeeded":
        await service.complete_payment(data)
    elif event_type == "checkout.session.expired":
        await service.expire_payment_session(data)
    else:
        logger.debug(f"Ignoring Stripe event type {event_type}")
