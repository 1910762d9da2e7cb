"""
Repository package for data access layer.
"""
from checkout_api.repositories.base import BaseRepository
from checkout_api.repositories.invoice import InvoiceArtifactRepository
from checkout_api.repositories.order_collection import (
    OrderCollectionRepository,
    OrderKeyRepository,
    OrderOwnerRepository,
)

__all__ = [
    "BaseRepository",
    "InvoiceArtifactRepository",
    "OrderCollectionRepository",
    "OrderKeyRepository",
    "OrderOwnerRepository",
]
