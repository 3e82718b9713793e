"""Menu management API router."""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from restopos.api.schemas import (
    MenuItemResponse,
    CreateMenuItemRequest,
    UpdateMenuItemRequest,
    ConsumeStockRequest,
)
from restopos.db.models import MenuItem, Category, User
from restopos.db.menu_access import list_menu_items, consume_stock, get_stock, menu_item_to_dict
from restopos.db.dependencies import get_sqlalchemy_session, require_admin, require_staff
from restopos.utils.money import to_cents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/menu", tags=["menu"])


def _check_category(session: Session, category_id) -> None:
    if category_id is not None and session.get(Category, category_id) is None:
        raise HTTPException(status_code=400, detail=f"Category {category_id} not found")


@router.get("", response_model=List[MenuItemResponse])
async def get_menu(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_staff)
):
    """
    List every menu item, grouped by category name then item name.

    - **Returns**: All items including unavailable and out-of-stock ones
    """
    try:
        return [menu_item_to_dict(item) for item in list_menu_items(session)]
    finally:
        session.close()


@router.get("/available", response_model=List[MenuItemResponse])
async def get_available_menu(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_staff)
):
    """List items that can be ordered right now (available and in stock)."""
    try:
        return [menu_item_to_dict(item) for item in list_menu_items(session, available_only=True)]
    finally:
        session.close()


@router.post("", response_model=MenuItemResponse, status_code=201)
async def create_menu_item(
    request: CreateMenuItemRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """
    Create a menu item.

    **Admin only**

    - **price**: Decimal amount, stored as cents
    - **stock**: Units on hand (default 0)
    """
    try:
        _check_category(session, request.category_id)
        item = MenuItem(
            name=request.name,
            price=to_cents(request.price),
            category_id=request.category_id,
            stock=request.stock,
            available=request.available,
            image_url=request.image_url
        )
        session.add(item)
        session.commit()
        logger.info("Menu item %s (%s) created", item.id, item.name)
        return menu_item_to_dict(item)
    finally:
        session.close()


@router.put("/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: int,
    request: UpdateMenuItemRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """
    Update a menu item. Only the fields present in the body change.

    **Admin only**
    """
    try:
        item = session.get(MenuItem, item_id)
        if not item:
            raise HTTPException(status_code=404, detail=f"Item {item_id} not found")

        fields = request.model_dump(exclude_unset=True)
        if "category_id" in fields:
            _check_category(session, fields["category_id"])
            item.category_id = fields["category_id"]
        if fields.get("name") is not None:
            item.name = fields["name"]
        if fields.get("price") is not None:
            item.price = to_cents(fields["price"])
        if fields.get("stock") is not None:
            item.stock = fields["stock"]
        if fields.get("available") is not None:
            item.available = fields["available"]
        if "image_url" in fields:
            item.image_url = fields["image_url"]

        session.commit()
        return menu_item_to_dict(item)
    finally:
        session.close()


@router.delete("/{item_id}")
async def delete_menu_item(
    item_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
) -> Dict[str, Any]:
    """
    Delete a menu item. Past order lines keep their captured name and price.

    **Admin only**
    """
    try:
        item = session.get(MenuItem, item_id)
        if not item:
            raise HTTPException(status_code=404, detail=f"Item {item_id} not found")
        session.delete(item)
        session.commit()
        logger.info("Menu item %s deleted", item_id)
        return {"status": "deleted", "item_id": item_id}
    finally:
        session.close()


@router.put("/{item_id}/stock")
async def consume_menu_stock(
    item_id: int,
    request: ConsumeStockRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
) -> Dict[str, Any]:
    """
    Take units out of stock by hand (waste, staff meals). Stock floors at zero.

    **Admin only**
    """
    try:
        if not consume_stock(session, item_id, request.quantity):
            raise HTTPException(status_code=404, detail=f"Item {item_id} not found")
        session.commit()
        return {"item_id": item_id, "stock": get_stock(session, item_id)}
    finally:
        session.close()
