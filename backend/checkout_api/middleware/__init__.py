"""
Middleware package.
"""
from checkout_api.middleware.error_handler import (
    ErrorHandlerMiddleware,
    register_exception_handlers,
)
from checkout_api.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
    "register_exception_handlers",
]
