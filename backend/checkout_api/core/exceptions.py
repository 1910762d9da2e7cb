"""
Error taxonomy for checkout finalization.

Each error carries the HTTP status it maps to when it reaches a router.
PersistenceConflict and InvoiceRenderError are internal: the first is folded
into an already-processed outcome and the second only ever changes the
polled invoice status.
"""
from fastapi import status


class CheckoutError(Exception):
    """Base class for all checkout finalization errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidSession(CheckoutError):
    """Session identifier is malformed; rejected before any gateway call."""

    status_code = status.HTTP_400_BAD_REQUEST


class SessionNotFound(CheckoutError):
    """The gateway has no checkout session with this identifier."""

    status_code = status.HTTP_404_NOT_FOUND


class GatewayError(CheckoutError):
    """Fetching the confirmation from the payment gateway failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


class InvalidConfirmation(CheckoutError):
    """A paid confirmation lacks data required to record an order."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PersistenceConflict(CheckoutError):
    """A concurrent insert for the same order id won the race."""

    status_code = status.HTTP_409_CONFLICT


class OrderNotFound(CheckoutError):
    """No order exists for the given identifier."""

    status_code = status.HTTP_404_NOT_FOUND


class InvoiceRenderError(CheckoutError):
    """Rendering or storing the invoice PDF failed."""
