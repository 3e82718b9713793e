"""
Orders API router.

Staff order intake, order edits and status changes, checkout (existing and
walk-up) and order history. Each write runs in one storage transaction; the
ordering service raises typed errors that the app-level handler maps to HTTP.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from restopos.api.schemas import (
    OrderResponse,
    ReceiptResponse,
    CreateOrderRequest,
    UpdateOrderItemsRequest,
    UpdateOrderStatusRequest,
    CheckoutRequest,
    WalkUpCheckoutRequest,
)
from restopos.db import order_utils
from restopos.db.models import User, ORDER_STATUSES
from restopos.db.dependencies import get_storage, require_admin, require_staff
from restopos.errors import OrderNotFoundError
from restopos.services import ordering
from restopos.storage import SQLAlchemyStorage


router = APIRouter(prefix="/api/orders", tags=["orders"])


def _parse_status_filter(status: Optional[str]) -> Optional[List[str]]:
    if not status:
        return None
    statuses = [s.strip() for s in status.split(",") if s.strip()]
    invalid = [s for s in statuses if s not in ORDER_STATUSES]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid status filter: {', '.join(invalid)}")
    return statuses


@router.get("", response_model=List[OrderResponse], summary="List orders (newest first)")
async def list_orders(
    status: Optional[str] = Query(None, description="Comma-separated statuses, e.g. Pending,Served"),
    waiter_id: Optional[int] = Query(None, alias="waiterId"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    """
    List orders with their lines.

    - **status**: Filter by one or more statuses
    - **waiterId**: Only orders attributed to this user
    - **limit** / **offset**: Pagination
    """
    statuses = _parse_status_filter(status)
    with storage.transaction() as session:
        orders = order_utils.list_orders(
            session, status=statuses, waiter_id=waiter_id, limit=limit, offset=offset
        )
        return [order_utils.order_to_dict(o) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., ge=1, le=ordering.MAX_INT),
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    with storage.transaction() as session:
        order = order_utils.get_order(session, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order_utils.order_to_dict(order)


@router.post("", response_model=OrderResponse, status_code=201, summary="Place an order")
async def create_order(
    request: CreateOrderRequest,
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    """
    Place a Pending order for a table.

    Prices come from the menu, never from the client. Stock is reserved now.

    - **tableNumber**: Positive integer
    - **items**: `[{"menuItemId": 1, "quantity": 2}, ...]`
    - **discountId**: Optional active discount
    """
    with storage.transaction() as session:
        order = ordering.place_staff_order(
            session,
            user,
            table_number=request.table_number,
            items=request.items,
            discount_id=request.discount_id
        )
        return order_utils.order_to_dict(order)


@router.put("/{order_id}/items", response_model=OrderResponse, summary="Replace an open order's lines")
async def update_order_items(
    request: UpdateOrderItemsRequest,
    order_id: int = Path(..., ge=1, le=ordering.MAX_INT),
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    """Re-price an open order from a new cart (lines and discount)."""
    with storage.transaction() as session:
        order = ordering.update_order_lines(
            session, order_id, items=request.items, discount_id=request.discount_id
        )
        return order_utils.order_to_dict(order)


@router.put("/{order_id}/status", response_model=OrderResponse, summary="Mark an order Served or Cancelled")
async def update_order_status(
    request: UpdateOrderStatusRequest,
    order_id: int = Path(..., ge=1, le=ordering.MAX_INT),
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    with storage.transaction() as session:
        order = ordering.change_order_status(session, order_id, request.status)
        return order_utils.order_to_dict(order)


@router.post("/checkout", response_model=ReceiptResponse, status_code=201, summary="Walk-up checkout")
async def walk_up_checkout(
    request: WalkUpCheckoutRequest,
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    """Create and pay an order in one step and return its receipt."""
    with storage.transaction() as session:
        order, transaction = ordering.walk_up_checkout(
            session,
            user,
            table_number=request.table_number,
            items=request.items,
            payment_method=request.payment_method,
            discount_id=request.discount_id
        )
        return order_utils.build_receipt(order, transaction)


@router.post("/{order_id}/checkout", response_model=ReceiptResponse, summary="Pay an existing order")
async def checkout_order(
    order_id: int = Path(..., ge=1, le=ordering.MAX_INT),
    request: Optional[CheckoutRequest] = None,
    storage: SQLAlchemyStorage = Depends(get_storage),
    user: User = Depends(require_staff)
):
    """
    Record payment for a Pending or Served order and return the receipt.

    - **paymentMethod**: e.g. "Cash", "Card" (default "Cash")
    """
    payment_method = request.payment_method if request else None
    with storage.transaction() as session:
        order, transaction = ordering.checkout_order(session, order_id, payment_method)
        return order_utils.build_receipt(order, transaction)


@router.delete("/{order_id}", summary="Delete an order (admin-only)")
async def delete_order(
    order_id: int = Path(..., ge=1, le=ordering.MAX_INT),
    storage: SQLAlchemyStorage = Depends(get_storage),
    admin: User = Depends(require_admin)
):
    """Hard delete; lines and transactions go with it."""
    with storage.transaction() as session:
        ordering.delete_order(session, order_id)
    return {"status": "deleted", "order_id": order_id}
