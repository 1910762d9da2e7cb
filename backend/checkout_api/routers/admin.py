"""
Operator endpoints: order collection repair and invoice retries.
"""
from typing import Annotated, Optional

from arq.connections import ArqRedis
from fastapi import APIRouter, BackgroundTasks, Depends

from checkout_api.core.exceptions import OrderNotFound
from checkout_api.core.logging import get_logger
from checkout_api.core.security import require_admin_key
from checkout_api.dependencies import get_invoice_pipeline, get_order_store, get_queue_pool
from checkout_api.schemas.invoice import InvoiceRetryResponse
from checkout_api.schemas.order import ConsolidationResponse
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.order_store import OrderConsolidationStore

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.post("/users/{user_id}/consolidate", response_model=ConsolidationResponse)
async def consolidate_user_orders(
    user_id: str,
    store: Annotated[OrderConsolidationStore, Depends(get_order_store)],
) -> ConsolidationResponse:
    """
    Merge a user's fragmented order history into one record.

    Idempotent; running it on an already consolidated user changes nothing.
    """
    result = await store.consolidate(user_id)
    return ConsolidationResponse(
        user_id=result.user_id,
        merged_count=result.merged_count,
        duplicates_removed=result.duplicates_removed,
        fragments_merged=result.fragments_merged,
    )


@router.post("/invoices/{order_id}/retry", response_model=InvoiceRetryResponse)
async def retry_invoice(
    order_id: str,
    background_tasks: BackgroundTasks,
    store: Annotated[OrderConsolidationStore, Depends(get_order_store)],
    pipeline: Annotated[InvoicePipeline, Depends(get_invoice_pipeline)],
    queue: Annotated[Optional[ArqRedis], Depends(get_queue_pool)],
) -> InvoiceRetryResponse:
    """Re-run invoice generation for an order unless its invoice is ready."""
    order = await store.get_order(order_id)
    if order is None:
        raise OrderNotFound("Order not found", order_id=order_id)

    readiness = await pipeline.status(order_id)
    if readiness.ready:
        return InvoiceRetryResponse(order_id=order_id, status="ready", scheduled=False)

    if queue is not None:
        await queue.enqueue_job("generate_invoice_job", order_id)
    else:
        background_tasks.add_task(pipeline.generate, order_id)

    logger.info("Invoice retry scheduled", order_id=order_id, via="arq" if queue else "background")
    current = readiness.status.value if readiness.status else "pending"
    return InvoiceRetryResponse(order_id=order_id, status=current, scheduled=True)
