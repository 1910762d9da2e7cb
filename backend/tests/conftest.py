"""
Shared pytest fixtures.

The environment is configured before the application is imported: settings
and the database engine are built at import time.
"""
import os
import tempfile
from pathlib import Path
from typing import Any, Optional
from unittest.mock import MagicMock

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="checkout-api-tests-"))

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'checkout.db'}"
os.environ["INVOICES_DIR"] = str(_TEST_ROOT / "invoices")
os.environ["ADMIN_API_KEY"] = "test-admin-key-0123456789"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("SENTRY_DSN", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import stripe  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from checkout_api.core.database import Base, async_session_factory, engine  # noqa: E402
from checkout_api.dependencies import get_confirmation_fetcher  # noqa: E402
from checkout_api.main import app  # noqa: E402
from checkout_api.models import OrderCollection  # noqa: E402
from checkout_api.schemas.checkout import LineItem, PaymentConfirmation, PaymentStatus  # noqa: E402
from checkout_api.services.invoice_pipeline import InvoicePipeline  # noqa: E402
from checkout_api.services.invoice_storage import InvoiceStorage  # noqa: E402
from checkout_api.services.order_store import OrderConsolidationStore  # noqa: E402
from checkout_api.services.payment_gateway import StripeConfirmationFetcher  # noqa: E402

ADMIN_KEY = os.environ["ADMIN_API_KEY"]
WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


@pytest.fixture(autouse=True)
async def reset_database():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    app.dependency_overrides.clear()
    await engine.dispose()


def stripe_session(
    session_id: str = "cs_test_a1",
    *,
    user_id: Optional[str] = "user-1",
    payment_status: str = "paid",
    amount_total: int = 5000,
    currency: str = "inr",
    payment_intent: Optional[str] = "pi_test_a1",
) -> dict[str, Any]:
    """A checkout session payload as returned with line_items expanded."""
    return {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": payment_status,
        "amount_total": amount_total,
        "currency": currency,
        "customer_details": {"email": "buyer@example.com", "name": "Asha Buyer"},
        "metadata": {"userId": user_id} if user_id else {},
        "payment_intent": {"id": payment_intent, "object": "payment_intent"} if payment_intent else None,
        "invoice": None,
        "line_items": {
            "object": "list",
            "data": [
                {
                    "description": "Leather Wallet",
                    "quantity": 2,
                    "amount_total": 4000,
                    "price": {
                        "product": "prod_wallet",
                        "unit_amount": 2000,
                        "metadata": {"variantId": "var_brown", "size": "M"},
                    },
                },
                {
                    "description": "Card Holder",
                    "quantity": 1,
                    "amount_total": 1000,
                    "price": {"product": {"id": "prod_card"}, "unit_amount": 1000},
                },
            ],
        },
    }


class FakeStripeSessions:
    """Stands in for client.checkout.sessions; unknown ids raise like Stripe does."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.calls: list[str] = []

    def add(self, payload: dict[str, Any]) -> None:
        self.sessions[payload["id"]] = payload

    def retrieve(self, session_id: str, params: Optional[dict] = None) -> dict[str, Any]:
        self.calls.append(session_id)
        if session_id not in self.sessions:
            raise stripe.InvalidRequestError(
                f"No such checkout.session: '{session_id}'",
                "id",
                code="resource_missing",
                http_status=404,
            )
        return self.sessions[session_id]


@pytest.fixture
def stripe_sessions() -> FakeStripeSessions:
    return FakeStripeSessions()


@pytest.fixture
def fetcher(stripe_sessions: FakeStripeSessions) -> StripeConfirmationFetcher:
    client = MagicMock()
    client.checkout.sessions = stripe_sessions
    return StripeConfirmationFetcher(client=client, timeout=5.0)


@pytest.fixture
def client(fetcher: StripeConfirmationFetcher):
    """Synchronous test client with the Stripe client faked out."""
    app.dependency_overrides[get_confirmation_fetcher] = lambda: fetcher
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client(fetcher: StripeConfirmationFetcher):
    app.dependency_overrides[get_confirmation_fetcher] = lambda: fetcher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def store() -> OrderConsolidationStore:
    return OrderConsolidationStore()


@pytest.fixture
def storage(tmp_path: Path) -> InvoiceStorage:
    return InvoiceStorage(tmp_path / "invoices")


@pytest.fixture
def pipeline(store: OrderConsolidationStore, storage: InvoiceStorage) -> InvoicePipeline:
    return InvoicePipeline(store, storage)


@pytest.fixture
def confirmation() -> PaymentConfirmation:
    return PaymentConfirmation(
        session_id="cs_test_a1",
        payment_status=PaymentStatus.PAID,
        customer_email="buyer@example.com",
        customer_name="Asha Buyer",
        amount_total=5000,
        currency="inr",
        metadata={"userId": "user-1"},
        payment_intent_id="pi_test_a1",
        line_items=[
            LineItem(product_id="prod_wallet", name="Leather Wallet", quantity=2, unit_price=2000),
            LineItem(product_id="prod_card", name="Card Holder", quantity=1, unit_price=1000),
        ],
    )


async def add_fragment(user_id: str, documents: list[dict[str, Any]]) -> int:
    """Write a raw collection fragment, as older code paths did."""
    async with async_session_factory() as session:
        fragment = OrderCollection(user_id=user_id, orders=documents)
        session.add(fragment)
        await session.commit()
        return fragment.id
