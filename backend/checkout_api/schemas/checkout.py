"""
Checkout Pydantic schemas: gateway confirmations and success results.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    """Payment outcome reported by the gateway."""

    PAID = "paid"
    UNPAID = "unpaid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class LineItem(BaseModel):
    """A purchased line; prices are in minor currency units."""

    product_id: Optional[str] = Field(None, alias="productId")
    name: Optional[str] = None
    quantity: int = Field(1, ge=0)
    unit_price: int = Field(0, alias="unitPrice")
    variant_id: Optional[str] = Field(None, alias="variantId")
    size: str = "default"

    model_config = ConfigDict(populate_by_name=True)

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price


class PaymentConfirmation(BaseModel):
    """
    Authoritative payment outcome for one checkout session.

    Read-only and never persisted as-is; the reconciler derives an Order
    from it.
    """

    session_id: str = Field(..., min_length=1, alias="sessionId")
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_name: Optional[str] = Field(None, alias="customerName")
    amount_total: int = Field(0, ge=0, alias="amountTotal")
    currency: str = "usd"
    metadata: dict[str, str] = Field(default_factory=dict)
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    invoice_id: Optional[str] = Field(None, alias="invoiceId")
    line_items: list[LineItem] = Field(default_factory=list, alias="lineItems")
    mock: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get("userId") or None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


class ReconcileOutcome(str, Enum):
    """What a reconcile call did."""

    CREATED = "created"
    ALREADY_PROCESSED = "already_processed"
    SKIPPED = "skipped"


class CheckoutResultResponse(BaseModel):
    """Result view returned by the checkout success callback."""

    status: ReconcileOutcome
    mock: bool
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_name: Optional[str] = Field(None, alias="customerName")
    session_id: str = Field(alias="sessionId")
    order_id: Optional[str] = Field(None, alias="orderId")
    poll_url: Optional[str] = Field(None, alias="pollUrl")
    message: str

    model_config = ConfigDict(populate_by_name=True)


class WebhookAck(BaseModel):
    """Acknowledgement for gateway webhooks."""

    received: bool = True
    event_type: Optional[str] = Field(None, alias="eventType")
    outcome: Optional[ReconcileOutcome] = None

    model_config = ConfigDict(populate_by_name=True)
