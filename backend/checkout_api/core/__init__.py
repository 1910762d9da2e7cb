"""
Core package containing configuration, database, logging, locks and errors.
"""
from checkout_api.core.config import settings
from checkout_api.core.database import Base, DbSession, get_db_context, get_db_session
from checkout_api.core.exceptions import (
    CheckoutError,
    GatewayError,
    InvalidConfirmation,
    InvalidSession,
    InvoiceRenderError,
    OrderNotFound,
    PersistenceConflict,
    SessionNotFound,
)
from checkout_api.core.locks import KeyedLock, order_locks, user_locks
from checkout_api.core.logging import configure_logging, get_logger
from checkout_api.core.security import require_admin_key, verify_admin_key

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_context",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "CheckoutError",
    "GatewayError",
    "InvalidConfirmation",
    "InvalidSession",
    "InvoiceRenderError",
    "OrderNotFound",
    "PersistenceConflict",
    "SessionNotFound",
    "KeyedLock",
    "order_locks",
    "user_locks",
    "require_admin_key",
    "verify_admin_key",
]
