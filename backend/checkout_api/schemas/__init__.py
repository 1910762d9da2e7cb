"""
Pydantic schemas package.
"""
from checkout_api.schemas.checkout import (
    CheckoutResultResponse,
    LineItem,
    PaymentConfirmation,
    PaymentStatus,
    ReconcileOutcome,
    WebhookAck,
)
from checkout_api.schemas.invoice import InvoiceRetryResponse, InvoiceStatusResponse
from checkout_api.schemas.order import (
    ConsolidationResponse,
    Order,
    OrderHistoryResponse,
    OrderStatus,
)

__all__ = [
    # Checkout
    "CheckoutResultResponse",
    "LineItem",
    "PaymentConfirmation",
    "PaymentStatus",
    "ReconcileOutcome",
    "WebhookAck",
    # Order
    "ConsolidationResponse",
    "Order",
    "OrderHistoryResponse",
    "OrderStatus",
    # Invoice
    "InvoiceRetryResponse",
    "InvoiceStatusResponse",
]
