"""
Services package for checkout finalization.
"""
from checkout_api.services.invoice_pipeline import InvoicePipeline, InvoiceReadiness
from checkout_api.services.invoice_poller import (
    InvoiceReadinessPoller,
    PollPhase,
    PollState,
    http_status_query,
)
from checkout_api.services.invoice_renderer import InvoiceRenderer
from checkout_api.services.invoice_storage import InvoiceStorage
from checkout_api.services.kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    create_kv_store,
)
from checkout_api.services.order_store import ConsolidationResult, OrderConsolidationStore
from checkout_api.services.payment_gateway import StripeConfirmationFetcher
from checkout_api.services.reconciler import OrderReconciler, ReconcileResult

__all__ = [
    "ConsolidationResult",
    "InMemoryKeyValueStore",
    "InvoicePipeline",
    "InvoiceReadiness",
    "InvoiceReadinessPoller",
    "InvoiceRenderer",
    "InvoiceStorage",
    "KeyValueStore",
    "OrderConsolidationStore",
    "OrderReconciler",
    "PollPhase",
    "PollState",
    "ReconcileResult",
    "RedisKeyValueStore",
    "StripeConfirmationFetcher",
    "create_kv_store",
    "http_status_query",
]
