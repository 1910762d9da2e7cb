"""
Invoice readiness and download routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from checkout_api.core.logging import get_logger
from checkout_api.dependencies import get_invoice_pipeline, get_invoice_storage, get_order_store
from checkout_api.schemas.invoice import InvoiceStatusResponse
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.invoice_storage import InvoiceStorage, is_safe_file_name
from checkout_api.services.order_store import OrderConsolidationStore

logger = get_logger(__name__)

router = APIRouter(tags=["invoices"])


@router.get("/invoice-status", response_model=InvoiceStatusResponse)
async def invoice_status(
    session_id: Annotated[str, Query(min_length=1)],
    store: Annotated[OrderConsolidationStore, Depends(get_order_store)],
    pipeline: Annotated[InvoicePipeline, Depends(get_invoice_pipeline)],
) -> InvoiceStatusResponse:
    """
    Polled by the result page.

    Unknown sessions (including mock ones, which are never stored) report
    not ready rather than 404 so pollers simply run out of attempts.
    """
    order = await store.resolve(session_id)
    if order is None:
        return InvoiceStatusResponse(ready=False, invoice_url=None)

    readiness = await pipeline.status(order.order_id)
    return InvoiceStatusResponse(
        ready=readiness.ready,
        invoice_url=readiness.invoice_url if readiness.ready else None,
    )


@router.get("/invoices/{file_name}")
async def download_invoice(
    file_name: str,
    storage: Annotated[InvoiceStorage, Depends(get_invoice_storage)],
) -> FileResponse:
    """Serve a stored invoice PDF."""
    if not is_safe_file_name(file_name):
        logger.warning("Rejected invoice file name", file_name=file_name)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid filename",
        )

    path = storage.resolve(file_name)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        )

    return FileResponse(
        path,
        media_type="application/pdf",
        filename=file_name,
    )
