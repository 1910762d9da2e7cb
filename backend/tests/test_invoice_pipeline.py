"""
Tests for invoice rendering, storage and the generation pipeline.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from conftest import add_fragment

from checkout_api.models.invoice import InvoiceArtifactStatus
from checkout_api.schemas.checkout import LineItem
from checkout_api.schemas.order import Order, OrderStatus
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.invoice_renderer import (
    InvoiceRenderer,
    build_invoice_html,
    format_amount,
)
from checkout_api.services.invoice_storage import (
    InvoiceStorage,
    invoice_file_name,
    is_safe_file_name,
)
from checkout_api.services.order_store import OrderConsolidationStore


@pytest.fixture
def order() -> Order:
    return Order(
        order_id="cs_test_inv",
        user_id="user-1",
        payment_intent_id="pi_test_inv",
        line_items=[
            LineItem(product_id="prod_wallet", name="Leather Wallet", quantity=2, unit_price=2000),
            LineItem(product_id="prod_card", name="Card Holder <Tan>", quantity=1, unit_price=1000),
        ],
        total_amount=5000,
        currency="inr",
        customer_email="buyer@example.com",
        customer_name="Asha Buyer",
    )


class TestInvoiceRenderer:
    """Tests for HTML building and PDF rendering."""

    def test_format_amount(self):
        assert format_amount(5000, "inr") == "INR 50.00"
        assert format_amount(123456, "usd") == "USD 1,234.56"

    def test_html_contains_order_details(self, order: Order):
        html = build_invoice_html(order, datetime(2026, 1, 5, tzinfo=timezone.utc))

        assert "cs_test_inv" in html
        assert "Leather Wallet" in html
        assert "INR 50.00" in html
        assert "Card Holder &lt;Tan&gt;" in html

    def test_html_labels_sized_items_and_empty_orders(self, order: Order):
        sized = order.model_copy(update={
            "line_items": [LineItem(product_id="prod_belt", name="Belt", size="M", quantity=1, unit_price=5000)],
        })
        empty = order.model_copy(update={"line_items": []})
        issued_at = datetime(2026, 1, 5, tzinfo=timezone.utc)

        assert "Belt (M)" in build_invoice_html(sized, issued_at)
        assert "No line items recorded" in build_invoice_html(empty, issued_at)

    def test_render_produces_pdf(self, order: Order):
        content = InvoiceRenderer().render(order, datetime.now(timezone.utc))

        assert content.startswith(b"%PDF")


class TestInvoiceStorage:
    """Tests for file naming and atomic writes."""

    @pytest.mark.parametrize(
        "file_name",
        ["../secret.pdf", "a/b.pdf", "invoice.txt", "invoice", "..pdf", "a\\b.pdf", ""],
    )
    def test_rejects_unsafe_names(self, file_name: str):
        assert is_safe_file_name(file_name) is False

    def test_accepts_generated_names(self):
        name = invoice_file_name("cs_test/../x", b"%PDF-1.4")

        assert is_safe_file_name(name)
        assert name.startswith("invoice-cs_test____x-")

    def test_write_and_resolve(self, storage: InvoiceStorage):
        path = storage.write("invoice-a.pdf", b"%PDF-1.4 data")

        assert path.read_bytes() == b"%PDF-1.4 data"
        assert storage.resolve("invoice-a.pdf") == path
        assert storage.exists("invoice-a.pdf")
        assert list(storage.directory.glob("*.part")) == []

    def test_resolve_missing_or_unsafe(self, storage: InvoiceStorage):
        storage.ensure_directory()

        assert storage.resolve("missing.pdf") is None
        assert storage.resolve("../missing.pdf") is None
        assert storage.exists(None) is False

    def test_write_refuses_unsafe_name(self, storage: InvoiceStorage):
        with pytest.raises(ValueError):
            storage.write("../escape.pdf", b"x")


class TestInvoicePipeline:
    """Tests for generation, failure recording and retries."""

    async def test_generate_marks_order_invoiced(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        storage: InvoiceStorage,
        order: Order,
    ):
        await store.insert_if_absent(order)
        assert (await pipeline.status(order.order_id)).status == InvoiceArtifactStatus.PENDING

        artifact = await pipeline.generate(order.order_id)

        assert artifact.status == InvoiceArtifactStatus.READY.value
        assert artifact.attempts == 1
        assert storage.resolve(artifact.file_name).read_bytes().startswith(b"%PDF")

        stored = await store.get_order(order.order_id)
        assert stored.status == OrderStatus.INVOICED
        assert stored.invoice_url == f"/invoices/{artifact.file_name}"
        assert stored.local_invoice_path is not None

        readiness = await pipeline.status(order.order_id)
        assert readiness.ready is True
        assert readiness.invoice_url == stored.invoice_url

    async def test_generate_is_idempotent_once_ready(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        await store.insert_if_absent(order)
        first = await pipeline.generate(order.order_id)

        pipeline.renderer = MagicMock()
        second = await pipeline.generate(order.order_id)

        pipeline.renderer.render.assert_not_called()
        assert second.file_name == first.file_name
        assert second.attempts == 1

    async def test_failure_records_error_and_keeps_order(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        await store.insert_if_absent(order)
        pipeline.renderer = MagicMock()
        pipeline.renderer.render.side_effect = RuntimeError("fonts missing")

        artifact = await pipeline.generate(order.order_id)

        assert artifact.status == InvoiceArtifactStatus.ERROR.value
        assert "fonts missing" in artifact.error_message
        readiness = await pipeline.status(order.order_id)
        assert readiness.ready is False
        assert readiness.invoice_url is None

        history = await store.list_orders("user-1")
        assert [o.order_id for o in history] == [order.order_id]
        assert history[0].status == OrderStatus.ERROR
        assert history[0].invoice_url is None

    async def test_retry_after_failure_reuses_artifact(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        await store.insert_if_absent(order)
        working = pipeline.renderer
        pipeline.renderer = MagicMock()
        pipeline.renderer.render.side_effect = RuntimeError("transient")
        await pipeline.generate(order.order_id)

        pipeline.renderer = working
        retried = await pipeline.retry_failed()

        assert retried == [order.order_id]
        readiness = await pipeline.status(order.order_id)
        assert readiness.ready is True
        stored = await store.get_order(order.order_id)
        assert stored.status == OrderStatus.INVOICED

    async def test_total_mismatch_does_not_block(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        mismatched = order.model_copy(update={"total_amount": 4200})
        await store.insert_if_absent(mismatched)

        artifact = await pipeline.generate(mismatched.order_id)

        assert artifact.status == InvoiceArtifactStatus.READY.value
        stored = await store.get_order(mismatched.order_id)
        assert stored.total_amount == 4200

    async def test_unknown_order(self, pipeline: InvoicePipeline):
        assert await pipeline.generate("cs_missing") is None

        readiness = await pipeline.status("cs_missing")
        assert readiness.status is None
        assert readiness.ready is False

    async def test_status_not_ready_when_file_removed(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        storage: InvoiceStorage,
        order: Order,
    ):
        await store.insert_if_absent(order)
        first = await pipeline.generate(order.order_id)
        storage.resolve(first.file_name).unlink()

        readiness = await pipeline.status(order.order_id)

        assert readiness.status == InvoiceArtifactStatus.READY
        assert readiness.ready is False
        assert readiness.invoice_url is None
        assert pipeline.needs_retry(readiness) is True

        second = await pipeline.generate(order.order_id)
        assert second.attempts == 2
        assert (await pipeline.status(order.order_id)).ready is True

    async def test_fresh_pending_invoice_is_left_alone(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        await store.insert_if_absent(order)

        assert pipeline.needs_retry(await pipeline.status(order.order_id)) is False
        assert await pipeline.retry_failed() == []

    async def test_retry_sweeps_abandoned_pending_invoices(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        # Order committed, but the process died before rendering
        await store.insert_if_absent(order)
        pipeline.pending_retry_after = timedelta(0)

        retried = await pipeline.retry_failed()

        assert retried == [order.order_id]
        assert (await pipeline.status(order.order_id)).ready is True

    async def test_generates_for_order_without_index_key(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
        order: Order,
    ):
        await add_fragment("user-1", [order.to_document()])

        artifact = await pipeline.generate(order.order_id)

        assert artifact.status == InvoiceArtifactStatus.READY.value
        assert (await pipeline.status(order.order_id)).ready is True
        assert (await store.find_by_payment_intent("pi_test_inv")).status == OrderStatus.INVOICED
