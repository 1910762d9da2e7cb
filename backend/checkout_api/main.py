"""
Checkout API - Main Application Entry Point.

Finalizes purchases after the payment gateway reports success: records each
order exactly once and renders its invoice in the background.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checkout_api.core.config import settings
from checkout_api.core.database import close_db, init_db
from checkout_api.core.logging import configure_logging, get_logger
from checkout_api.dependencies import get_invoice_storage, get_kv_store, get_reconciler
from checkout_api.middleware import (
    ErrorHandlerMiddleware,
    RequestIdMiddleware,
    register_exception_handlers,
)
from checkout_api.routers import (
    admin_router,
    checkout_router,
    health_router,
    invoices_router,
    orders_router,
    webhooks_router,
)
from checkout_api.services.job_queue import create_queue_pool
from checkout_api.services.kv_store import RedisKeyValueStore

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    await init_db()
    get_invoice_storage().ensure_directory()
    app.state.queue_pool = await create_queue_pool()

    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    yield

    logger.info("Shutting down application")
    # Let detached invoice renders finish before the engine goes away
    await get_reconciler().drain()
    if app.state.queue_pool is not None:
        await app.state.queue_pool.close()
    kv = get_kv_store()
    if isinstance(kv, RedisKeyValueStore):
        await kv.close()
    await close_db()


def create_app() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Checkout finalization, order history and invoice API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Add middleware (order matters - last added = outermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Admin-Key",
            "X-Request-ID",
        ],
    )

    # Customer-facing paths used by the result page
    app.include_router(health_router)
    app.include_router(checkout_router)
    app.include_router(invoices_router)

    app.include_router(orders_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "checkout_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
