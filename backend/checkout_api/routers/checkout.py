"""
Checkout success callback.

The payment page redirects here with ?session_id=. The order is recorded
synchronously; the invoice is rendered after the response has been sent.
"""
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from checkout_api.core.logging import get_logger
from checkout_api.dependencies import (
    get_confirmation_fetcher,
    get_invoice_pipeline,
    get_kv_store,
    get_reconciler,
)
from checkout_api.schemas.checkout import CheckoutResultResponse, ReconcileOutcome
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.kv_store import KeyValueStore, cart_key
from checkout_api.services.payment_gateway import ConfirmationFetcher
from checkout_api.services.reconciler import OrderReconciler

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

MESSAGES = {
    ReconcileOutcome.CREATED: "Payment successful. Your invoice is being generated.",
    ReconcileOutcome.ALREADY_PROCESSED: "Payment successful. This order was already recorded.",
}


@router.get("/success", response_model=CheckoutResultResponse)
async def checkout_success(
    session_id: Annotated[str, Query(min_length=1)],
    background_tasks: BackgroundTasks,
    fetcher: Annotated[ConfirmationFetcher, Depends(get_confirmation_fetcher)],
    reconciler: Annotated[OrderReconciler, Depends(get_reconciler)],
    pipeline: Annotated[InvoicePipeline, Depends(get_invoice_pipeline)],
    kv: Annotated[KeyValueStore, Depends(get_kv_store)],
) -> CheckoutResultResponse:
    """
    Finalize a checkout after the gateway reports success.

    Safe to hit repeatedly for the same session: the order is recorded once.
    Mock and unpaid sessions render a result without touching storage.
    """
    confirmation = await fetcher.fetch(session_id)

    result = await reconciler.reconcile(
        confirmation,
        trigger=lambda order_id: background_tasks.add_task(pipeline.generate, order_id),
    )

    if result.outcome == ReconcileOutcome.CREATED and confirmation.user_id:
        # The order is committed; a stale cart must not turn it into a 500
        try:
            await kv.delete(cart_key(confirmation.user_id))
        except Exception as e:
            logger.warning(
                "Failed to clear cart",
                user_id=confirmation.user_id,
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    if confirmation.mock:
        message = "This was a mock transaction. No real payment was processed."
    elif result.outcome == ReconcileOutcome.SKIPPED:
        message = "Payment has not been completed."
    else:
        message = MESSAGES[result.outcome]

    order_id = result.order.order_id if result.order else None
    logger.info(
        "Checkout success handled",
        session_id=session_id,
        outcome=result.outcome.value,
        mock=confirmation.mock,
    )

    return CheckoutResultResponse(
        status=result.outcome,
        mock=confirmation.mock,
        payment_status=confirmation.payment_status,
        customer_email=confirmation.customer_email,
        customer_name=confirmation.customer_name,
        session_id=confirmation.session_id,
        order_id=order_id,
        poll_url=f"/invoice-status?session_id={order_id}" if order_id else None,
        message=message,
    )
