"""
Order consolidation store - owns every user's order collection.

Orders are embedded documents inside per-user collection fragments. The store
is the only writer: the reconciler inserts through insert_if_absent, the
invoice pipeline updates through update_order, and operators repair
fragmented histories through consolidate.

Concurrency:
- order_keys primary key: conditional insert, at most one order per order_id
  across processes
- order_owners row lock: serializes read-modify-write of a user's fragments
  across processes, including a user's first fragment and consolidation
- user lock (in-process): keeps same-process writers off the database lock
"""
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout_api.core.database import async_session_factory
from checkout_api.core.exceptions import OrderNotFound, PersistenceConflict
from checkout_api.core.locks import KeyedLock, user_locks
from checkout_api.core.logging import get_logger
from checkout_api.models.order_collection import OrderCollection
from checkout_api.models.order_key import OrderKey
from checkout_api.repositories.invoice import InvoiceArtifactRepository
from checkout_api.repositories.order_collection import (
    OrderCollectionRepository,
    OrderKeyRepository,
    OrderOwnerRepository,
)
from checkout_api.schemas.order import Order, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConsolidationResult:
    """Outcome of merging a user's fragments into one canonical record."""

    user_id: str
    merged_count: int
    duplicates_removed: int
    fragments_merged: int


def merge_fragments(
    fragments: Iterable[Sequence[dict[str, Any]]],
) -> tuple[list[dict[str, Any]], int]:
    """
    Flatten fragments in order and drop repeated order ids.

    The first occurrence of an order id wins. Returns (orders, duplicates_removed).
    """
    seen: set[str] = set()
    merged: list[dict[str, Any]] = []
    duplicates = 0
    for fragment in fragments:
        for document in fragment:
            order_id = document["order_id"]
            if order_id in seen:
                duplicates += 1
                continue
            seen.add(order_id)
            merged.append(document)
    return merged, duplicates


def _find_document(
    fragments: Sequence[OrderCollection],
    order_id: str,
) -> tuple[Optional[OrderCollection], Optional[dict[str, Any]]]:
    for fragment in fragments:
        for document in fragment.orders or []:
            if document.get("order_id") == order_id:
                return fragment, document
    return None, None


class OrderConsolidationStore:
    """Durable per-user order collections with an at-most-once insert."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        locks: KeyedLock = user_locks,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks

    # ============================================
    # WRITES
    # ============================================

    async def insert_if_absent(self, order: Order) -> tuple[Order, bool]:
        """
        Insert an order unless its order_id already exists.

        Returns (order, created). When the order already exists the stored
        order is returned unchanged. A pending invoice artifact is created in
        the same transaction as a new order.

        Raises PersistenceConflict when another process committed the same
        order_id between our check and our insert.
        """
        async with self._locks.hold(order.user_id):
            async with self._session_factory() as session:
                collections = OrderCollectionRepository(session)
                keys = OrderKeyRepository(session)

                try:
                    await OrderOwnerRepository(session).lock(order.user_id)

                    existing_key = await keys.get_by_id(order.order_id)
                    if existing_key is not None:
                        existing = await self._load(session, existing_key)
                        await session.commit()
                        if existing is None:
                            raise PersistenceConflict(
                                "Order key exists without an order document",
                                order_id=order.order_id,
                            )
                        return existing, False

                    fragments = await collections.list_fragments(order.user_id, for_update=True)
                    _, legacy = _find_document(fragments, order.order_id)
                    if legacy is not None:
                        # Written before the key index existed; index it now
                        stored = Order.from_document(legacy)
                        session.add(self._key_for(stored))
                        await session.commit()
                        logger.info(
                            "Indexed legacy order",
                            order_id=order.order_id,
                            user_id=order.user_id,
                        )
                        return stored, False

                    session.add(self._key_for(order))
                    await session.flush()

                    if fragments:
                        target = fragments[0]
                    else:
                        target = await collections.create({"user_id": order.user_id, "orders": []})
                    await collections.append_order(target, order.to_document())

                    await InvoiceArtifactRepository(session).get_or_create(order.order_id)
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise PersistenceConflict(
                        "Order was inserted concurrently",
                        order_id=order.order_id,
                    ) from e

        logger.info(
            "Order inserted",
            order_id=order.order_id,
            user_id=order.user_id,
            fragment_id=target.id,
        )
        return order, True

    async def update_order(self, order_id: str, **changes: Any) -> Order:
        """
        Read-modify-write a stored order.

        Only the first occurrence of the order id is updated; consolidation
        discards later copies anyway. An order found without an index key
        gets one here.
        """
        user_id = await self._owner_of(order_id)
        if user_id is None:
            raise OrderNotFound("Order not found", order_id=order_id)

        async with self._locks.hold(user_id):
            async with self._session_factory() as session:
                collections = OrderCollectionRepository(session)
                await OrderOwnerRepository(session).lock(user_id)
                fragments = await collections.list_fragments(user_id, for_update=True)
                fragment, document = _find_document(fragments, order_id)
                if fragment is None or document is None:
                    raise OrderNotFound("Order document missing", order_id=order_id)

                current = Order.from_document(document)
                updated = Order.model_validate(
                    {**current.model_dump(), **changes, "updated_at": utcnow()}
                )
                await collections.replace_order(fragment, updated.to_document())
                if await OrderKeyRepository(session).get_by_id(order_id) is None:
                    session.add(self._key_for(updated))
                await session.commit()

        logger.debug("Order updated", order_id=order_id, fields=sorted(changes))
        return updated

    async def consolidate(self, user_id: str) -> ConsolidationResult:
        """
        Merge all of a user's fragments into one deduplicated fragment.

        Fragments are read oldest first and the first copy of each order id
        wins. Idempotent: a user that already has a single duplicate-free
        fragment is left untouched. Missing index keys are back-filled.
        """
        async with self._locks.hold(user_id):
            async with self._session_factory() as session:
                collections = OrderCollectionRepository(session)
                keys = OrderKeyRepository(session)

                await OrderOwnerRepository(session).lock(user_id)
                fragments = await collections.list_fragments(user_id, for_update=True)
                merged, duplicates = merge_fragments(f.orders or [] for f in fragments)

                indexed = {key.order_id for key in await keys.list_for_user(user_id)}
                for document in merged:
                    if document["order_id"] not in indexed and await keys.get_by_id(document["order_id"]) is None:
                        session.add(self._key_for(Order.from_document(document)))

                if len(fragments) > 1 or duplicates:
                    await collections.delete_for_user(user_id)
                    await collections.create({"user_id": user_id, "orders": merged})

                await session.commit()

        result = ConsolidationResult(
            user_id=user_id,
            merged_count=len(merged),
            duplicates_removed=duplicates,
            fragments_merged=len(fragments),
        )
        logger.info(
            "Order collection consolidated",
            user_id=user_id,
            orders=result.merged_count,
            duplicates_removed=result.duplicates_removed,
            fragments=result.fragments_merged,
        )
        return result

    # ============================================
    # READS
    # ============================================

    async def get_order(self, order_id: str) -> Optional[Order]:
        """
        Look up an order by its canonical id.

        Orders written before the key index existed are found by searching
        the embedded documents.
        """
        async with self._session_factory() as session:
            key = await OrderKeyRepository(session).get_by_id(order_id)
            if key is not None:
                return await self._load(session, key)
            fragments = await OrderCollectionRepository(session).find_containing(order_id)
        _, document = _find_document(fragments, order_id)
        return Order.from_document(document) if document is not None else None

    async def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        """Secondary lookup; the session id remains the authoritative key."""
        async with self._session_factory() as session:
            key = await OrderKeyRepository(session).get_by_payment_intent(payment_intent_id)
            if key is None:
                return None
            return await self._load(session, key)

    async def resolve(self, identifier: str) -> Optional[Order]:
        """Find an order by session id, falling back to payment intent id."""
        order = await self.get_order(identifier)
        if order is None:
            order = await self.find_by_payment_intent(identifier)
        return order

    async def list_orders(self, user_id: str) -> list[Order]:
        """The user's order history as one deduplicated sequence."""
        async with self._session_factory() as session:
            fragments = await OrderCollectionRepository(session).list_fragments(user_id)
        merged, _ = merge_fragments(f.orders or [] for f in fragments)
        return [Order.from_document(document) for document in merged]

    async def fragment_count(self, user_id: str) -> int:
        async with self._session_factory() as session:
            return len(await OrderCollectionRepository(session).list_fragments(user_id))

    # ============================================
    # HELPERS
    # ============================================

    async def _owner_of(self, order_id: str) -> Optional[str]:
        async with self._session_factory() as session:
            key = await OrderKeyRepository(session).get_by_id(order_id)
            if key is not None:
                return key.user_id
            fragments = await OrderCollectionRepository(session).find_containing(order_id)
        fragment, _ = _find_document(fragments, order_id)
        return fragment.user_id if fragment is not None else None

    async def _load(self, session: AsyncSession, key: OrderKey) -> Optional[Order]:
        fragments = await OrderCollectionRepository(session).list_fragments(key.user_id)
        _, document = _find_document(fragments, key.order_id)
        return Order.from_document(document) if document is not None else None

    @staticmethod
    def _key_for(order: Order) -> OrderKey:
        return OrderKey(
            order_id=order.order_id,
            user_id=order.user_id,
            payment_intent_id=order.payment_intent_id,
        )
