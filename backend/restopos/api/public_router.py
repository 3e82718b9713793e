"""
Public (unauthenticated) customer API: browse the menu, order from a table,
call a waiter.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from restopos.api.schemas import (
    PublicMenuItemResponse,
    PublicOrderRequest,
    PublicOrderResponse,
    CallWaiterRequest,
    NotificationResponse,
)
from restopos.db.dependencies import get_storage
from restopos.db.menu_access import list_menu_items, menu_item_to_dict
from restopos.db.user_utils import get_or_create_system_user
from restopos.services import ordering
from restopos.services.notifications import EVENT_CALL_WAITER, EVENT_NEW_ORDER
from restopos.storage import SQLAlchemyStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public", tags=["public"])


def _publish_new_order(request: Request, table_number: int, customer_name: str) -> None:
    """Best-effort fan-out; the order is already committed."""
    try:
        request.app.state.notifications.publish(EVENT_NEW_ORDER, table_number, customer_name)
    except Exception:
        logger.exception("Failed to publish new_order notification for table %s", table_number)


@router.get("/menu", response_model=List[PublicMenuItemResponse])
async def public_menu(storage: SQLAlchemyStorage = Depends(get_storage)):
    """Items a customer can order right now."""
    with storage.transaction() as session:
        return [menu_item_to_dict(item) for item in list_menu_items(session, available_only=True)]


@router.post("/orders", response_model=PublicOrderResponse, status_code=201)
async def create_public_order(
    body: PublicOrderRequest,
    request: Request,
    storage: SQLAlchemyStorage = Depends(get_storage)
):
    """
    Submit an order from a table.

    - **customerName**: Required, non-empty
    - **tableNumber**: Positive integer
    - **items**: `[{"menuItemId": 1, "quantity": 2}, ...]`
    """
    ordering.check_public_order(body.customer_name, body.table_number, body.items)
    system_user_id = get_or_create_system_user(storage)
    with storage.transaction() as session:
        order = ordering.place_public_order(
            session,
            system_user_id,
            customer_name=body.customer_name,
            table_number=body.table_number,
            items=body.items
        )
        result = {"order_id": order.id, "status": order.status}
        table_number, customer_name = order.table_number, order.customer_name

    _publish_new_order(request, table_number, customer_name)
    return result


@router.post("/call-waiter", response_model=NotificationResponse, status_code=202)
async def call_waiter(body: CallWaiterRequest, request: Request):
    """Alert connected staff screens that a table needs attention."""
    table_number = ordering.validate_table_number(body.table_number)
    customer_name = body.customer_name.strip() if body.customer_name else None
    return request.app.state.notifications.publish(EVENT_CALL_WAITER, table_number, customer_name)
