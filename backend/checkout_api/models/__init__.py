"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from checkout_api.models.invoice import InvoiceArtifact, InvoiceArtifactStatus
from checkout_api.models.order_collection import OrderCollection
from checkout_api.models.order_key import OrderKey
from checkout_api.models.order_owner import OrderOwner

__all__ = [
    "OrderCollection",
    "OrderKey",
    "OrderOwner",
    "InvoiceArtifact",
    "InvoiceArtifactStatus",
]
