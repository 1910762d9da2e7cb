"""
OrderCollection model - one storage fragment of a user's order history.

A user's collection is normally a single row. Older data can be split across
several rows; the consolidation operation merges them back into one.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from checkout_api.core.database import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class OrderCollection(Base):
    """A fragment of a user's order history, holding embedded order documents."""

    __tablename__ = "order_collections"

    # Monotonic id doubles as the fragment creation order
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
    )

    # Embedded orders (serialized Order schemas, insertion ordered)
    orders: Mapped[list[dict[str, Any]]] = mapped_column(
        JsonDocument,
        default=list,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def order_ids(self) -> list[str]:
        return [entry["order_id"] for entry in self.orders or []]

    def __repr__(self) -> str:
        return f"<OrderCollection {self.id} user={self.user_id} orders={len(self.orders or [])}>"
