"""
Order collection repositories: fragments and the order key index.
"""
from typing import Any, Optional

from sqlalchemy import Text, cast, delete, select, type_coerce
from sqlalchemy.dialects import postgresql, sqlite

from checkout_api.models.order_collection import OrderCollection
from checkout_api.models.order_key import OrderKey
from checkout_api.models.order_owner import OrderOwner
from checkout_api.repositories.base import BaseRepository


class OrderCollectionRepository(BaseRepository[OrderCollection]):
    """Repository for order collection fragments."""

    model = OrderCollection

    async def list_fragments(
        self,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> list[OrderCollection]:
        """All fragments for a user, oldest first."""
        stmt = (
            select(OrderCollection)
            .where(OrderCollection.user_id == user_id)
            .order_by(OrderCollection.id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def append_order(
        self,
        fragment: OrderCollection,
        document: dict[str, Any],
    ) -> OrderCollection:
        """Append an order document; assigns a new list so the change is tracked."""
        fragment.orders = [*(fragment.orders or []), document]
        await self.session.flush()
        return fragment

    async def replace_order(
        self,
        fragment: OrderCollection,
        document: dict[str, Any],
    ) -> OrderCollection:
        """Replace the first embedded order with the same order_id."""
        updated = []
        replaced = False
        for entry in fragment.orders or []:
            if not replaced and entry.get("order_id") == document["order_id"]:
                updated.append(document)
                replaced = True
            else:
                updated.append(entry)
        fragment.orders = updated
        await self.session.flush()
        return fragment

    async def find_containing(self, order_id: str) -> list[OrderCollection]:
        """Fragments of any user that may embed the order id, oldest first."""
        stmt = select(OrderCollection).order_by(OrderCollection.id)
        if self.session.bind.dialect.name == "postgresql":
            orders = type_coerce(OrderCollection.orders, postgresql.JSONB)
            stmt = stmt.where(orders.contains([{"order_id": order_id}]))
        else:
            stmt = stmt.where(cast(OrderCollection.orders, Text).like(f"%\"{order_id}\"%"))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_user(self, user_id: str) -> int:
        """Delete every fragment belonging to a user."""
        stmt = delete(OrderCollection).where(OrderCollection.user_id == user_id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0


class OrderKeyRepository(BaseRepository[OrderKey]):
    """Repository for the order id index."""

    model = OrderKey

    async def get_by_payment_intent(self, payment_intent_id: str) -> Optional[OrderKey]:
        stmt = (
            select(OrderKey)
            .where(OrderKey.payment_intent_id == payment_intent_id)
            .order_by(OrderKey.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[OrderKey]:
        stmt = select(OrderKey).where(OrderKey.user_id == user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class OrderOwnerRepository(BaseRepository[OrderOwner]):
    """Repository for per-user row locks."""

    model = OrderOwner

    async def lock(self, user_id: str) -> OrderOwner:
        """
        Create the user's owner row if missing and lock it for the transaction.

        Concurrent callers for the same user block here until the holder
        commits, then see everything it wrote.
        """
        dialect = postgresql if self.session.bind.dialect.name == "postgresql" else sqlite
        await self.session.execute(
            dialect.insert(OrderOwner)
            .values(user_id=user_id)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        stmt = select(OrderOwner).where(OrderOwner.user_id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one()
