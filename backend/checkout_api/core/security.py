"""
Security utilities: operator key checks.
"""
import hmac
from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from checkout_api.core.config import settings
from checkout_api.core.logging import get_logger

logger = get_logger(__name__)


def verify_admin_key(provided: Optional[str]) -> bool:
    """Constant-time comparison against the configured operator key."""
    if not settings.admin_api_key:
        logger.warning("Admin API key not configured, operator endpoints disabled")
        return False
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), settings.admin_api_key.encode())


async def require_admin_key(
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Dependency guarding operator-only routes."""
    if not verify_admin_key(x_admin_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin key",
        )
