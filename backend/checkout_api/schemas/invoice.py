"""
Invoice Pydantic schemas for readiness polling and operator retries.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceStatusResponse(BaseModel):
    """Polled by the checkout result page until the PDF exists."""

    ready: bool
    invoice_url: Optional[str] = Field(None, alias="invoiceUrl")

    model_config = ConfigDict(populate_by_name=True)


class InvoiceRetryResponse(BaseModel):
    """Acknowledges that regeneration was scheduled."""

    order_id: str = Field(alias="orderId")
    status: str
    scheduled: bool

    model_config = ConfigDict(populate_by_name=True)
