"""Discount management API."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos.api.schemas import DiscountResponse, CreateDiscountRequest, UpdateDiscountRequest
from restopos.db.models import Discount, User, DISCOUNT_TYPES, DISCOUNT_PERCENTAGE
from restopos.db.dependencies import get_sqlalchemy_session, require_admin, require_staff
from restopos.utils.money import to_cents, from_cents
from restopos.utils.time_utils import isoformat_local


router = APIRouter(prefix="/api/discounts", tags=["discounts"])

MAX_PERCENTAGE = 10000  # 100.00%


def discount_to_dict(discount: Discount) -> Dict[str, Any]:
    return {
        "id": discount.id,
        "name": discount.name,
        "type": discount.type,
        "value": from_cents(discount.value),
        "active": bool(discount.active),
        "created_at": isoformat_local(discount.created_at),
    }


def _checked_value(discount_type: str, value) -> int:
    """Store a Decimal value in hundredths, rejecting unknown types and > 100%."""
    if discount_type not in DISCOUNT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid discount type: {discount_type}")
    hundredths = to_cents(value)
    if discount_type == DISCOUNT_PERCENTAGE and hundredths > MAX_PERCENTAGE:
        raise HTTPException(status_code=400, detail="Percentage discount cannot exceed 100")
    return hundredths


@router.get("", response_model=List[DiscountResponse])
async def list_discounts(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_staff)
):
    try:
        discounts = session.execute(select(Discount).order_by(Discount.name)).scalars().all()
        return [discount_to_dict(d) for d in discounts]
    finally:
        session.close()


@router.get("/active", response_model=List[DiscountResponse])
async def list_active_discounts(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_staff)
):
    """Discounts a waiter can apply at order time."""
    try:
        discounts = session.execute(
            select(Discount).where(Discount.active.is_(True)).order_by(Discount.name)
        ).scalars().all()
        return [discount_to_dict(d) for d in discounts]
    finally:
        session.close()


@router.post("", response_model=DiscountResponse, status_code=201)
async def create_discount(
    request: CreateDiscountRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        discount = Discount(
            name=request.name,
            type=request.type,
            value=_checked_value(request.type, request.value),
            active=request.active
        )
        session.add(discount)
        session.commit()
        return discount_to_dict(discount)
    finally:
        session.close()


@router.put("/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: int,
    request: UpdateDiscountRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Update a discount. Existing orders keep the amounts already computed."""
    try:
        discount = session.get(Discount, discount_id)
        if not discount:
            raise HTTPException(status_code=404, detail="discount not found")

        new_type = request.type if request.type is not None else discount.type
        if request.value is not None:
            discount.value = _checked_value(new_type, request.value)
        elif request.type is not None:
            discount.value = _checked_value(new_type, from_cents(discount.value))
        discount.type = new_type
        if request.name is not None:
            discount.name = request.name
        if request.active is not None:
            discount.active = request.active

        session.commit()
        return discount_to_dict(discount)
    finally:
        session.close()


@router.delete("/{discount_id}")
async def delete_discount(
    discount_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        discount = session.get(Discount, discount_id)
        if not discount:
            raise HTTPException(status_code=404, detail="discount not found")
        session.delete(discount)
        session.commit()
        return {"status": "ok"}
    finally:
        session.close()
