"""
Order history API routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from checkout_api.dependencies import get_order_store
from checkout_api.schemas.order import OrderHistoryResponse
from checkout_api.services.order_store import OrderConsolidationStore

router = APIRouter(prefix="/users", tags=["orders"])


@router.get("/{user_id}/orders", response_model=OrderHistoryResponse)
async def list_user_orders(
    user_id: str,
    store: Annotated[OrderConsolidationStore, Depends(get_order_store)],
) -> OrderHistoryResponse:
    """A user's orders, oldest first, whatever the invoice state."""
    orders = await store.list_orders(user_id)
    return OrderHistoryResponse(user_id=user_id, orders=orders, total=len(orders))
