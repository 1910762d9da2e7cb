"""
Payment confirmation fetcher backed by Stripe Checkout.

Read-only: retrieves the checkout session for a session id and maps it into a
PaymentConfirmation. Mock sessions are answered locally so the checkout flow
can be exercised without a live gateway. No retries happen here; callers
decide whether to try again.
"""
import asyncio
from collections.abc import Mapping
from typing import Any, Optional, Protocol

import stripe

from checkout_api.core.config import settings
from checkout_api.core.exceptions import GatewayError, InvalidSession, SessionNotFound
from checkout_api.core.logging import get_logger
from checkout_api.schemas.checkout import LineItem, PaymentConfirmation, PaymentStatus

logger = get_logger(__name__)


class ConfirmationFetcher(Protocol):
    async def fetch(self, session_id: str) -> PaymentConfirmation: ...


def _ref_id(value: Any) -> Optional[str]:
    """Expanded Stripe references arrive as objects, unexpanded ones as ids."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", None)


def _line_items(session: Mapping[str, Any]) -> list[LineItem]:
    items = []
    for line in (session.get("line_items") or {}).get("data") or []:
        price = line.get("price") or {}
        price_metadata = price.get("metadata") or {}
        quantity = line.get("quantity") or 1
        unit_price = price.get("unit_amount")
        if unit_price is None:
            # Fall back to the line total when the price has no unit amount
            unit_price = (line.get("amount_total") or 0) // max(quantity, 1)
        items.append(
            LineItem(
                product_id=_ref_id(price.get("product")),
                name=line.get("description"),
                quantity=quantity,
                unit_price=unit_price,
                variant_id=price_metadata.get("variantId"),
                size=price_metadata.get("size") or "default",
            )
        )
    return items


def confirmation_from_session(session: Mapping[str, Any]) -> PaymentConfirmation:
    """Map a Stripe checkout session payload into a PaymentConfirmation."""
    customer = session.get("customer_details") or {}
    return PaymentConfirmation(
        session_id=session["id"],
        payment_status=PaymentStatus(session.get("payment_status") or "unpaid"),
        customer_email=customer.get("email") or session.get("customer_email"),
        customer_name=customer.get("name"),
        amount_total=session.get("amount_total") or 0,
        currency=session.get("currency") or "usd",
        metadata={str(k): str(v) for k, v in (session.get("metadata") or {}).items()},
        payment_intent_id=_ref_id(session.get("payment_intent")),
        invoice_id=_ref_id(session.get("invoice")),
        line_items=_line_items(session),
    )


def mock_confirmation(session_id: str) -> PaymentConfirmation:
    """Fixed successful confirmation for mock sessions. Never persisted."""
    return PaymentConfirmation(
        session_id=session_id,
        payment_status=PaymentStatus.PAID,
        customer_email="mock@example.com",
        customer_name="Mock Customer",
        amount_total=0,
        currency="usd",
        metadata={"userId": "mock-user"},
        mock=True,
    )


class StripeConfirmationFetcher:
    """
    Fetches checkout confirmations from Stripe.

    Features:
    - Session id shape check before any network call
    - Mock sessions served locally
    - Bounded timeout, no automatic retries
    """

    EXPAND = ["line_items", "payment_intent", "invoice"]

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        session_prefix: Optional[str] = None,
        mock_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[stripe.StripeClient] = None,
    ) -> None:
        self.session_prefix = session_prefix or settings.stripe_session_prefix
        self.mock_prefix = mock_prefix or settings.mock_session_prefix
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds

        api_key = api_key or settings.stripe_secret_key
        if client is None and api_key:
            client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                max_network_retries=0,
            )
        self.client = client

    def is_mock(self, session_id: str) -> bool:
        return session_id.startswith(self.mock_prefix)

    def validate(self, session_id: str) -> None:
        """Reject identifiers the gateway could never have issued."""
        if not session_id or session_id.strip() != session_id:
            raise InvalidSession("Missing or malformed session id", session_id=session_id)
        if self.is_mock(session_id):
            return
        if not session_id.startswith(self.session_prefix) or len(session_id) == len(self.session_prefix):
            raise InvalidSession(
                f"Session id must start with '{self.session_prefix}'",
                session_id=session_id,
            )

    async def fetch(self, session_id: str) -> PaymentConfirmation:
        """
        Retrieve the confirmation for a checkout session.

        Raises:
            InvalidSession: malformed id, checked before any gateway call
            SessionNotFound: the gateway does not know this session
            GatewayError: gateway unreachable, misconfigured, or timed out
        """
        self.validate(session_id)

        if self.is_mock(session_id):
            logger.info("Serving mock checkout confirmation", session_id=session_id)
            return mock_confirmation(session_id)

        if self.client is None:
            raise GatewayError("Payment gateway is not configured", session_id=session_id)

        try:
            session = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.checkout.sessions.retrieve,
                    session_id,
                    {"expand": self.EXPAND},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Gateway timed out", session_id=session_id, timeout=self.timeout)
            raise GatewayError("Payment gateway timed out", session_id=session_id) from e
        except stripe.InvalidRequestError as e:
            if e.http_status == 404 or e.code == "resource_missing":
                raise SessionNotFound("Checkout session not found", session_id=session_id) from e
            logger.error("Gateway rejected request", session_id=session_id, error=str(e))
            raise GatewayError("Payment gateway rejected the request", session_id=session_id) from e
        except stripe.StripeError as e:
            logger.error("Gateway request failed", session_id=session_id, error=str(e))
            raise GatewayError("Payment gateway request failed", session_id=session_id) from e

        payload = session.to_dict() if hasattr(session, "to_dict") else session
        confirmation = confirmation_from_session(payload)
        logger.info(
            "Fetched checkout confirmation",
            session_id=session_id,
            payment_status=confirmation.payment_status.value,
            line_items=len(confirmation.line_items),
        )
        return confirmation
