"""
Order reconciler - turns a payment confirmation into at most one order.

The order id is the checkout session id, so a refreshed success page, a
second browser tab and a re-delivered webhook all land on the same key.
"""
import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from checkout_api.core.exceptions import InvalidConfirmation, PersistenceConflict
from checkout_api.core.logging import get_logger
from checkout_api.schemas.checkout import PaymentConfirmation, ReconcileOutcome
from checkout_api.schemas.order import Order, OrderStatus
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.order_store import OrderConsolidationStore

logger = get_logger(__name__)

# Schedules invoice generation for an order id without waiting for it
InvoiceTrigger = Callable[[str], None]


@dataclass(frozen=True)
class ReconcileResult:
    """What reconcile() did and the order it concerns, if any."""

    outcome: ReconcileOutcome
    order: Optional[Order] = None
    invoice_scheduled: bool = False
    reason: Optional[str] = None

    @property
    def already_processed(self) -> bool:
        return self.outcome == ReconcileOutcome.ALREADY_PROCESSED


def order_from_confirmation(confirmation: PaymentConfirmation, user_id: str) -> Order:
    return Order(
        order_id=confirmation.session_id,
        payment_intent_id=confirmation.payment_intent_id,
        user_id=user_id,
        line_items=list(confirmation.line_items),
        total_amount=confirmation.amount_total,
        currency=confirmation.currency,
        status=OrderStatus.PENDING_INVOICE,
        customer_email=confirmation.customer_email,
        customer_name=confirmation.customer_name,
    )


class OrderReconciler:
    """Records paid confirmations as orders exactly once and kicks off invoicing."""

    def __init__(
        self,
        store: OrderConsolidationStore,
        pipeline: InvoicePipeline,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self._background: set[asyncio.Task] = set()

    async def reconcile(
        self,
        confirmation: PaymentConfirmation,
        trigger: Optional[InvoiceTrigger] = None,
    ) -> ReconcileResult:
        """
        Record the order for a confirmation.

        Mock and unpaid confirmations are no-ops. A paid confirmation without
        a userId raises InvalidConfirmation. Otherwise the order is inserted
        if absent; invoice generation is handed to ``trigger`` (a detached
        task by default) and never awaited here.
        """
        if confirmation.mock:
            logger.info("Skipping mock confirmation", session_id=confirmation.session_id)
            return ReconcileResult(ReconcileOutcome.SKIPPED, reason="mock session")

        if not confirmation.is_paid:
            logger.info(
                "Skipping unpaid confirmation",
                session_id=confirmation.session_id,
                payment_status=confirmation.payment_status.value,
            )
            return ReconcileResult(ReconcileOutcome.SKIPPED, reason="payment not completed")

        user_id = confirmation.user_id
        if not user_id:
            raise InvalidConfirmation(
                "Paid confirmation has no userId in metadata",
                session_id=confirmation.session_id,
            )

        candidate = order_from_confirmation(confirmation, user_id)
        trigger = trigger or self._spawn

        try:
            order, created = await self.store.insert_if_absent(candidate)
        except PersistenceConflict:
            logger.info("Lost insert race, loading winner", order_id=candidate.order_id)
            order = await self.store.get_order(candidate.order_id)
            if order is None:
                raise
            created = False

        if created:
            trigger(order.order_id)
            logger.info(
                "Order reconciled",
                order_id=order.order_id,
                user_id=user_id,
                total_amount=order.total_amount,
                currency=order.currency,
            )
            return ReconcileResult(ReconcileOutcome.CREATED, order=order, invoice_scheduled=True)

        # A failed or abandoned invoice attempt is retried on revisit
        readiness = await self.pipeline.status(order.order_id)
        retry = self.pipeline.needs_retry(readiness)
        if retry:
            trigger(order.order_id)

        logger.info(
            "Order already processed",
            order_id=order.order_id,
            user_id=order.user_id,
            invoice_retry=retry,
        )
        return ReconcileResult(
            ReconcileOutcome.ALREADY_PROCESSED,
            order=order,
            invoice_scheduled=retry,
        )

    def _spawn(self, order_id: str) -> None:
        """Default trigger: run generation as a detached task."""
        task = asyncio.get_running_loop().create_task(self.pipeline.generate(order_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for detached invoice tasks; used at shutdown and in tests."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
