"""
OrderOwner model - one row per user with an order collection.
"""
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from checkout_api.core.database import Base


class OrderOwner(Base):
    """
    Row lock for a user's fragments.

    SELECT ... FOR UPDATE on fragments locks nothing while a user has none,
    so writers lock this row instead before reading them.
    """

    __tablename__ = "order_owners"

    user_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OrderOwner {self.user_id}>"
