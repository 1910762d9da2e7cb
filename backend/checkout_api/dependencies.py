"""
Service providers for FastAPI dependency injection.

Each provider builds its service once per process. Tests replace them with
app.dependency_overrides.
"""
from functools import lru_cache
from typing import Optional

from arq.connections import ArqRedis
from fastapi import Request

from checkout_api.core.config import settings
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.invoice_storage import InvoiceStorage
from checkout_api.services.kv_store import KeyValueStore, create_kv_store
from checkout_api.services.order_store import OrderConsolidationStore
from checkout_api.services.payment_gateway import ConfirmationFetcher, StripeConfirmationFetcher
from checkout_api.services.reconciler import OrderReconciler


@lru_cache
def get_order_store() -> OrderConsolidationStore:
    return OrderConsolidationStore()


@lru_cache
def get_invoice_storage() -> InvoiceStorage:
    return InvoiceStorage(settings.invoices_dir)


@lru_cache
def get_invoice_pipeline() -> InvoicePipeline:
    return InvoicePipeline(get_order_store(), get_invoice_storage())


@lru_cache
def get_reconciler() -> OrderReconciler:
    return OrderReconciler(get_order_store(), get_invoice_pipeline())


@lru_cache
def get_confirmation_fetcher() -> ConfirmationFetcher:
    return StripeConfirmationFetcher()


@lru_cache
def get_kv_store() -> KeyValueStore:
    return create_kv_store(settings)


def get_queue_pool(request: Request) -> Optional[ArqRedis]:
    """arq pool opened in the lifespan; None when Redis is not configured."""
    return getattr(request.app.state, "queue_pool", None)
