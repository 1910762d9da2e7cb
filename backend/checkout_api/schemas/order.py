"""
Order Pydantic schemas.

Orders live as embedded documents inside order collection fragments; these
schemas are both the storage format (snake_case) and the API format
(camelCase aliases).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from checkout_api.schemas.checkout import LineItem


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Order lifecycle as seen by the invoice pipeline."""

    PENDING_INVOICE = "pending_invoice"
    INVOICED = "invoiced"
    ERROR = "error"


class Order(BaseModel):
    """A paid order; order_id is the checkout session id."""

    order_id: str = Field(..., min_length=1, alias="orderId")
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    user_id: str = Field(..., min_length=1, alias="userId")
    line_items: list[LineItem] = Field(default_factory=list, alias="lineItems")
    total_amount: int = Field(0, ge=0, alias="totalAmount")
    currency: str = "usd"
    status: OrderStatus = OrderStatus.PENDING_INVOICE
    invoice_url: Optional[str] = Field(None, alias="invoiceUrl")
    local_invoice_path: Optional[str] = Field(None, alias="localInvoicePath")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_name: Optional[str] = Field(None, alias="customerName")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize for embedding in an order collection fragment."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Order":
        return cls.model_validate(document)

    @property
    def line_items_total(self) -> int:
        return sum(item.line_total for item in self.line_items)


class OrderHistoryResponse(BaseModel):
    """A user's orders, oldest first."""

    user_id: str = Field(alias="userId")
    orders: list[Order]
    total: int

    model_config = ConfigDict(populate_by_name=True)


class ConsolidationResponse(BaseModel):
    """Outcome of merging a user's order fragments."""

    user_id: str = Field(alias="userId")
    merged_count: int = Field(alias="mergedCount")
    duplicates_removed: int = Field(alias="duplicatesRemoved")
    fragments_merged: int = Field(alias="fragmentsMerged")

    model_config = ConfigDict(populate_by_name=True)
