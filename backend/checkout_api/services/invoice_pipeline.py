"""
Invoice generation pipeline.

Renders a PDF for a stored order, writes it to artifact storage and records
the result on both the invoice artifact and the order. Runs detached from the
request that created the order; callers observe completion through status().

A failed render never removes the order. The artifact and order move to
``error`` and a later generate() call for the same order id retries in place.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout_api.core.config import settings
from checkout_api.core.database import async_session_factory
from checkout_api.core.exceptions import InvoiceRenderError, OrderNotFound
from checkout_api.core.locks import KeyedLock, order_locks
from checkout_api.core.logging import get_logger
from checkout_api.models.invoice import InvoiceArtifact, InvoiceArtifactStatus
from checkout_api.repositories.invoice import InvoiceArtifactRepository
from checkout_api.schemas.order import Order, OrderStatus
from checkout_api.services.invoice_renderer import InvoiceRenderer
from checkout_api.services.invoice_storage import (
    InvoiceStorage,
    invoice_file_name,
    invoice_public_path,
)
from checkout_api.services.order_store import OrderConsolidationStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class InvoiceReadiness:
    """Snapshot of an order's invoice for pollers."""

    order_id: Optional[str]
    status: Optional[InvoiceArtifactStatus]
    invoice_url: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def ready(self) -> bool:
        return self.status == InvoiceArtifactStatus.READY and self.invoice_url is not None


class InvoicePipeline:
    """Generates invoice PDFs for orders, one render per order id at a time."""

    def __init__(
        self,
        store: OrderConsolidationStore,
        storage: InvoiceStorage,
        renderer: Optional[InvoiceRenderer] = None,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        locks: KeyedLock = order_locks,
        pending_retry_after: Optional[timedelta] = None,
    ) -> None:
        self.store = store
        self.storage = storage
        self.renderer = renderer or InvoiceRenderer()
        self._session_factory = session_factory
        self._locks = locks
        if pending_retry_after is None:
            pending_retry_after = timedelta(seconds=settings.invoice_pending_retry_seconds)
        self.pending_retry_after = pending_retry_after

    async def generate(self, order_id: str) -> Optional[InvoiceArtifact]:
        """
        Render and store the invoice for an order.

        Safe to call repeatedly: a ready artifact whose file still exists is
        left alone, anything else is (re)rendered into the same artifact row.
        Errors are recorded, logged and swallowed; this runs detached from
        any caller that could handle them.
        """
        async with self._locks.hold(order_id):
            order = await self.store.get_order(order_id)
            if order is None:
                logger.error("Invoice requested for unknown order", order_id=order_id)
                return None

            async with self._session_factory() as session:
                artifact, _ = await InvoiceArtifactRepository(session).get_or_create(order_id)
                await session.commit()

            if artifact.is_ready and self.storage.exists(artifact.file_name):
                logger.info("Invoice already generated", order_id=order_id, file_name=artifact.file_name)
                return artifact

            try:
                file_name, path = await self._render_and_store(order)
            except Exception as e:
                return await self._record_failure(order, e)

            invoice_url = invoice_public_path(file_name)
            try:
                await self.store.update_order(
                    order_id,
                    status=OrderStatus.INVOICED,
                    invoice_url=invoice_url,
                    local_invoice_path=str(path),
                )
            except OrderNotFound as e:
                return await self._record_failure(order, e)

            async with self._session_factory() as session:
                repo = InvoiceArtifactRepository(session)
                artifact, _ = await repo.get_or_create(order_id)
                await repo.mark_ready(artifact, file_name=file_name, storage_path=str(path))
                await session.commit()

        logger.info(
            "Invoice generated",
            order_id=order_id,
            file_name=file_name,
            attempts=artifact.attempts,
        )
        return artifact

    async def status(self, order_id: str) -> InvoiceReadiness:
        """
        Whether the invoice for an order can be downloaded yet.

        A ready artifact whose file is gone reports no URL, so pollers never
        receive a link that 404s.
        """
        async with self._session_factory() as session:
            artifact = await InvoiceArtifactRepository(session).get_by_id(order_id)
        if artifact is None:
            return InvoiceReadiness(order_id=order_id, status=None)

        status = InvoiceArtifactStatus(artifact.status)
        invoice_url = None
        if status == InvoiceArtifactStatus.READY and self.storage.exists(artifact.file_name):
            invoice_url = invoice_public_path(artifact.file_name)
        return InvoiceReadiness(
            order_id=order_id,
            status=status,
            invoice_url=invoice_url,
            updated_at=artifact.updated_at,
        )

    def needs_retry(self, readiness: InvoiceReadiness) -> bool:
        """
        True when nothing will finish this invoice on its own: no artifact,
        a failed one, a ready one whose file is gone, or a pending one older
        than ``pending_retry_after``.
        """
        if readiness.ready:
            return False
        if readiness.status != InvoiceArtifactStatus.PENDING:
            return True
        if readiness.updated_at is None:
            return True
        updated_at = readiness.updated_at
        if updated_at.tzinfo is None:
            # SQLite hands back naive UTC timestamps
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - updated_at >= self.pending_retry_after

    async def retry_failed(self, limit: int = 50) -> list[str]:
        """
        Re-run generation for artifacts stuck in error or abandoned while
        pending. Returns the order ids retried.
        """
        stale_before = datetime.now(timezone.utc) - self.pending_retry_after
        async with self._session_factory() as session:
            stuck = await InvoiceArtifactRepository(session).list_retryable(
                stale_before,
                limit=limit,
            )
            order_ids = [artifact.order_id for artifact in stuck]

        for order_id in order_ids:
            await self.generate(order_id)
        logger.info("Retried stuck invoices", count=len(order_ids))
        return order_ids

    # ============================================
    # HELPERS
    # ============================================

    async def _render_and_store(self, order: Order):
        self._check_totals(order)
        issued_at = datetime.now(timezone.utc)
        try:
            content = await asyncio.to_thread(self.renderer.render, order, issued_at)
            file_name = invoice_file_name(order.order_id, content)
            path = await asyncio.to_thread(self.storage.write, file_name, content)
        except InvoiceRenderError:
            raise
        except Exception as e:
            raise InvoiceRenderError(str(e) or type(e).__name__, order_id=order.order_id) from e
        return file_name, path

    def _check_totals(self, order: Order) -> None:
        """The charged total is authoritative; a mismatch is only reported."""
        computed = order.line_items_total
        if order.line_items and computed != order.total_amount:
            logger.warning(
                "Line items do not sum to order total",
                order_id=order.order_id,
                line_items_total=computed,
                total_amount=order.total_amount,
                currency=order.currency,
            )

    async def _record_failure(self, order: Order, error: Exception) -> Optional[InvoiceArtifact]:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        logger.error(
            "Invoice generation failed",
            order_id=order.order_id,
            error=message,
            error_type=type(error).__name__,
        )

        async with self._session_factory() as session:
            repo = InvoiceArtifactRepository(session)
            artifact, _ = await repo.get_or_create(order.order_id)
            await repo.mark_error(artifact, message)
            await session.commit()

        try:
            await self.store.update_order(
                order.order_id,
                status=OrderStatus.ERROR,
                invoice_url=None,
                local_invoice_path=None,
            )
        except OrderNotFound:
            logger.error("Order vanished while recording invoice failure", order_id=order.order_id)
        return artifact
