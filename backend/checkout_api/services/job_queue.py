"""
ARQ Job Queue Service - Async Redis-based job queue for background tasks.

Provides:
- Invoice generation outside the web process
- Operator-triggered order collection consolidation
- Periodic retry of failed invoices
"""
from typing import Any, Optional
from urllib.parse import urlparse

from arq import create_pool, cron
from arq.connections import ArqRedis, RedisSettings

from checkout_api.core.config import settings
from checkout_api.core.logging import configure_logging, get_logger
from checkout_api.services.invoice_pipeline import InvoicePipeline
from checkout_api.services.invoice_storage import InvoiceStorage
from checkout_api.services.order_store import OrderConsolidationStore

logger = get_logger(__name__)


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from config."""
    parsed = urlparse(str(settings.redis_url) if settings.redis_url else "redis://localhost:6379")
    database = int(parsed.path.lstrip("/") or 0)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        database=database,
    )


# ============================================
# LIFECYCLE
# ============================================

async def startup(ctx: dict) -> None:
    """Build the services once per worker process."""
    configure_logging()
    store = OrderConsolidationStore()
    ctx["store"] = store
    ctx["pipeline"] = InvoicePipeline(store, InvoiceStorage())
    logger.info("Invoice worker started")


async def shutdown(ctx: dict) -> None:
    logger.info("Invoice worker stopped")


# ============================================
# JOB FUNCTIONS
# ============================================

async def generate_invoice_job(ctx: dict, order_id: str) -> dict[str, Any]:
    """
    Background job to render the invoice for an order.

    Args:
        ctx: ARQ context with the shared pipeline
        order_id: Order (checkout session) id

    Returns:
        Artifact status summary
    """
    pipeline: InvoicePipeline = ctx["pipeline"]
    logger.info("Starting invoice job", order_id=order_id)

    artifact = await pipeline.generate(order_id)
    if artifact is None:
        return {"error": "Order not found"}

    return {
        "order_id": order_id,
        "status": artifact.status,
        "file_name": artifact.file_name,
    }


async def consolidate_orders_job(ctx: dict, user_id: str) -> dict[str, Any]:
    """Merge a user's fragmented order collection."""
    store: OrderConsolidationStore = ctx["store"]
    result = await store.consolidate(user_id)
    return {
        "user_id": result.user_id,
        "merged_count": result.merged_count,
        "duplicates_removed": result.duplicates_removed,
        "fragments_merged": result.fragments_merged,
    }


async def retry_failed_invoices_job(ctx: dict) -> dict[str, Any]:
    """Periodic sweep over invoices stuck in error or abandoned while pending."""
    pipeline: InvoicePipeline = ctx["pipeline"]
    retried = await pipeline.retry_failed()
    return {"retried": len(retried)}


# ============================================
# WORKER SETTINGS
# ============================================

class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        generate_invoice_job,
        consolidate_orders_job,
        retry_failed_invoices_job,
    ]

    # Failed invoice sweep every 30 minutes
    cron_jobs = [
        cron(retry_failed_invoices_job, minute={0, 30}),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = get_redis_settings()

    # Worker settings
    max_jobs = 10
    job_timeout = 300  # 5 minutes
    keep_result = 3600  # 1 hour
    max_tries = 1  # generate() records failures itself


async def create_queue_pool() -> Optional[ArqRedis]:
    """Create ARQ Redis connection pool, or None when Redis is not configured."""
    if not settings.redis_url:
        return None
    return await create_pool(get_redis_settings())
