"""
API routers package.
"""
from checkout_api.routers.admin import router as admin_router
from checkout_api.routers.checkout import router as checkout_router
from checkout_api.routers.health import router as health_router
from checkout_api.routers.invoices import router as invoices_router
from checkout_api.routers.orders import router as orders_router
from checkout_api.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "checkout_router",
    "health_router",
    "invoices_router",
    "orders_router",
    "webhooks_router",
]
