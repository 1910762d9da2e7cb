"""
InvoiceArtifact model - tracks the rendered PDF for an order.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from checkout_api.core.database import Base


class InvoiceArtifactStatus(str, Enum):
    """Lifecycle of an invoice artifact."""

    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


class InvoiceArtifact(Base):
    """Invoice artifact keyed by order id; regenerations reuse the same row."""

    __tablename__ = "invoice_artifacts"

    order_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    # Storage
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    storage_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=InvoiceArtifactStatus.PENDING.value,
        index=True,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)

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

    @property
    def is_ready(self) -> bool:
        return self.status == InvoiceArtifactStatus.READY.value

    def __repr__(self) -> str:
        return f"<InvoiceArtifact {self.order_id} {self.status}>"
