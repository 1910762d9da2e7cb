"""
Stripe webhook receiver.

Stripe may deliver the same event more than once and in any order relative
to the customer's redirect; reconciliation is idempotent on the session id so
every delivery is handled the same way.
"""
from typing import Annotated, Optional

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, status

from checkout_api.core.config import settings
from checkout_api.core.logging import get_logger
from checkout_api.dependencies import (
    get_confirmation_fetcher,
    get_invoice_pipeline,
    get_reconciler,
)
from checkout_api.schemas.checkout import WebhookAck
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.payment_gateway import ConfirmationFetcher
from checkout_api.services.reconciler import OrderReconciler

logger = get_logger(__name__)

router = APIRouter(prefix="/stripe", tags=["webhooks"])

SESSION_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}


@router.post("/webhooks", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    fetcher: Annotated[ConfirmationFetcher, Depends(get_confirmation_fetcher)],
    reconciler: Annotated[OrderReconciler, Depends(get_reconciler)],
    pipeline: Annotated[InvoicePipeline, Depends(get_invoice_pipeline)],
    stripe_signature: Annotated[Optional[str], Header()] = None,
) -> WebhookAck:
    """Verify the event signature and reconcile completed checkout sessions."""
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook secret not configured",
        )
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret,
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Rejected webhook", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}",
        )

    event_type = event["type"]
    if event_type not in SESSION_EVENTS:
        logger.info("Ignoring webhook event", event_type=event_type, event_id=event["id"])
        return WebhookAck(event_type=event_type)

    session_id = event["data"]["object"]["id"]
    logger.info("Webhook checkout event", event_type=event_type, session_id=session_id)

    # Refetch so line items and references arrive expanded
    confirmation = await fetcher.fetch(session_id)
    result = await reconciler.reconcile(
        confirmation,
        trigger=lambda order_id: background_tasks.add_task(pipeline.generate, order_id),
    )
    return WebhookAck(event_type=event_type, outcome=result.outcome)
