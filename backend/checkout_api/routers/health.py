"""
Health check and monitoring endpoints.
"""
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from checkout_api.core.config import settings
from checkout_api.core.database import get_db_session
from checkout_api.dependencies import get_invoice_storage
from checkout_api.services.invoice_storage import InvoiceStorage

router = APIRouter(tags=["health"])


@router.get("/")
async def root() -> dict:
    """API root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@router.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
    }


@router.get("/health/ready")
async def readiness_check(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    storage: Annotated[InvoiceStorage, Depends(get_invoice_storage)],
) -> dict:
    """
    Readiness probe - checks if the service can handle requests.
    Verifies database connectivity and invoice storage.
    """
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        storage.ensure_directory()
        storage_status = "writable"
    except OSError as e:
        storage_status = f"error: {str(e)}"

    is_ready = db_status == "connected" and storage_status == "writable"

    return {
        "status": "ready" if is_ready else "not_ready",
        "checks": {
            "database": db_status,
            "invoice_storage": storage_status,
            "payment_gateway": "configured" if settings.stripe_secret_key else "mock_only",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """
    Liveness probe - checks if the service is alive.
    Simple check that doesn't verify dependencies.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
