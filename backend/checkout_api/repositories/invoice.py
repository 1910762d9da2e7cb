"""
Invoice artifact repository for data access operations.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select

from checkout_api.models.invoice import InvoiceArtifact, InvoiceArtifactStatus
from checkout_api.repositories.base import BaseRepository


class InvoiceArtifactRepository(BaseRepository[InvoiceArtifact]):
    """Repository for InvoiceArtifact model operations."""

    model = InvoiceArtifact

    async def get_or_create(self, order_id: str) -> tuple[InvoiceArtifact, bool]:
        """
        Get the artifact for an order, creating a pending one if missing.
        Returns (artifact, created) tuple.
        """
        existing = await self.get_by_id(order_id)
        if existing:
            return existing, False

        artifact = InvoiceArtifact(
            order_id=order_id,
            status=InvoiceArtifactStatus.PENDING.value,
            attempts=0,
        )
        self.session.add(artifact)
        await self.session.flush()
        return artifact, True

    async def mark_ready(
        self,
        artifact: InvoiceArtifact,
        file_name: str,
        storage_path: str,
    ) -> InvoiceArtifact:
        artifact.status = InvoiceArtifactStatus.READY.value
        artifact.file_name = file_name
        artifact.storage_path = storage_path
        artifact.error_message = None
        artifact.attempts = (artifact.attempts or 0) + 1
        await self.session.flush()
        return artifact

    async def mark_error(
        self,
        artifact: InvoiceArtifact,
        error_message: str,
    ) -> InvoiceArtifact:
        artifact.status = InvoiceArtifactStatus.ERROR.value
        artifact.error_message = error_message
        artifact.attempts = (artifact.attempts or 0) + 1
        await self.session.flush()
        return artifact

    async def get_by_file_name(self, file_name: str) -> Optional[InvoiceArtifact]:
        stmt = select(InvoiceArtifact).where(InvoiceArtifact.file_name == file_name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_retryable(
        self,
        stale_before: datetime,
        *,
        limit: int = 100,
    ) -> list[InvoiceArtifact]:
        """Artifacts in error, plus pending ones untouched since ``stale_before``."""
        stmt = (
            select(InvoiceArtifact)
            .where(
                or_(
                    InvoiceArtifact.status == InvoiceArtifactStatus.ERROR.value,
                    and_(
                        InvoiceArtifact.status == InvoiceArtifactStatus.PENDING.value,
                        InvoiceArtifact.updated_at <= stale_before,
                    ),
                )
            )
            .order_by(InvoiceArtifact.updated_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
