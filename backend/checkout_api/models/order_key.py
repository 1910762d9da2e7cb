"""
OrderKey model - the idempotency index over embedded orders.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from checkout_api.core.database import Base


class OrderKey(Base):
    """
    One row per order id.

    The primary key is the conditional write that guarantees at most one
    order per checkout session across processes.
    """

    __tablename__ = "order_keys"

    # Checkout session id
    order_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
    )

    # Secondary lookup only, never used for dedup
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        index=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OrderKey {self.order_id} user={self.user_id}>"
