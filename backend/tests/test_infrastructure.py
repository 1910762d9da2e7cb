"""
Tests for keyed locks, the cart store and the arq job functions.
"""
import asyncio
from unittest.mock import AsyncMock

from conftest import add_fragment

from checkout_api.core.config import Settings
from checkout_api.core.locks import KeyedLock
from checkout_api.core.logging import mask_customer_fields, mask_email
from checkout_api.models.invoice import InvoiceArtifactStatus
from checkout_api.schemas.order import Order
from checkout_api.services.job_queue import (
    WorkerSettings,
    consolidate_orders_job,
    generate_invoice_job,
    retry_failed_invoices_job,
    startup,
)
from checkout_api.services.kv_store import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    cart_key,
    create_kv_store,
)


class TestKeyedLock:
    """Tests for per-key asyncio locks."""

    async def test_serializes_same_key(self):
        locks = KeyedLock("test")
        events = []

        async def worker(name: str):
            async with locks.hold("k"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock("test")

        async with locks.hold("a"):
            assert locks.is_held("a")
            async with locks.hold("b"):
                assert locks.is_held("b")

    async def test_idle_locks_are_released(self):
        locks = KeyedLock("test")

        async with locks.hold("a"):
            assert len(locks) == 1

        assert len(locks) == 0
        assert locks.is_held("a") is False


class TestKeyValueStore:
    """Tests for cart store implementations."""

    async def test_in_memory_round_trip(self):
        kv = InMemoryKeyValueStore()

        await kv.set(cart_key("user-1"), [{"productId": "p1", "quantity": 2}])

        assert await kv.get("cart-user-1") == [{"productId": "p1", "quantity": 2}]
        await kv.delete("cart-user-1")
        assert await kv.get("cart-user-1") is None
        await kv.delete("cart-user-1")

    async def test_redis_store_serializes_json(self):
        client = AsyncMock()
        client.get.return_value = '{"items": 1}'
        kv = RedisKeyValueStore(client)

        await kv.set("cart-u", {"items": 1})
        value = await kv.get("cart-u")
        await kv.delete("cart-u")

        client.set.assert_awaited_once_with("cart-u", '{"items": 1}')
        client.delete.assert_awaited_once_with("cart-u")
        assert value == {"items": 1}

    def test_factory_picks_implementation(self):
        assert isinstance(create_kv_store(Settings(redis_url=None)), InMemoryKeyValueStore)
        assert isinstance(
            create_kv_store(Settings(redis_url="redis://localhost:6379/0")),
            RedisKeyValueStore,
        )


class TestJobQueue:
    """Tests for arq job functions."""

    async def _ctx(self) -> dict:
        ctx: dict = {}
        await startup(ctx)
        return ctx

    def test_worker_settings(self):
        names = {f.__name__ for f in WorkerSettings.functions}

        assert names == {"generate_invoice_job", "consolidate_orders_job", "retry_failed_invoices_job"}
        assert WorkerSettings.max_tries == 1

    async def test_generate_invoice_job(self):
        ctx = await self._ctx()
        await ctx["store"].insert_if_absent(Order(order_id="cs_job", user_id="user-3", total_amount=100))

        result = await generate_invoice_job(ctx, "cs_job")

        assert result["status"] == InvoiceArtifactStatus.READY.value
        assert result["file_name"].endswith(".pdf")

    async def test_generate_invoice_job_unknown_order(self):
        ctx = await self._ctx()

        assert await generate_invoice_job(ctx, "cs_nope") == {"error": "Order not found"}

    async def test_consolidate_orders_job(self):
        ctx = await self._ctx()
        await add_fragment("user-4", [Order(order_id="cs_a", user_id="user-4").to_document()])
        await add_fragment("user-4", [Order(order_id="cs_a", user_id="user-4").to_document()])

        result = await consolidate_orders_job(ctx, "user-4")

        assert result == {
            "user_id": "user-4",
            "merged_count": 1,
            "duplicates_removed": 1,
            "fragments_merged": 2,
        }

    async def test_retry_failed_invoices_job_with_nothing_failed(self):
        ctx = await self._ctx()

        assert await retry_failed_invoices_job(ctx) == {"retried": 0}


class TestLoggingProcessors:
    """Tests for checkout-specific structlog processors."""

    def test_masks_customer_email(self):
        event = mask_customer_fields(None, "info", {"event": "x", "customer_email": "asha@example.com"})

        assert event["customer_email"] == "a***@example.com"

    def test_mask_without_domain(self):
        assert mask_email("not-an-email") == "***"

    def test_leaves_other_fields(self):
        event = mask_customer_fields(None, "info", {"event": "x", "order_id": "cs_a", "email": None})

        assert event == {"event": "x", "order_id": "cs_a", "email": None}
