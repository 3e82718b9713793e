"""Menu category API."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos.api.schemas import CategoryResponse, CreateCategoryRequest
from restopos.db.models import Category, User
from restopos.db.dependencies import get_sqlalchemy_session, require_admin, require_staff
from restopos.utils.time_utils import isoformat_local


router = APIRouter(prefix="/api/categories", tags=["categories"])


def _category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "created_at": isoformat_local(category.created_at),
    }


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_staff)
):
    try:
        categories = session.execute(select(Category).order_by(Category.name)).scalars().all()
        return [_category_to_dict(c) for c in categories]
    finally:
        session.close()


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    request: CreateCategoryRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        name = request.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="name is required")
        existing = session.execute(select(Category).where(Category.name == name)).scalar_one_or_none()
        if existing:
            raise HTTPException(status_code=409, detail="category already exists")

        category = Category(name=name)
        session.add(category)
        session.commit()
        return _category_to_dict(category)
    finally:
        session.close()


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Delete a category; its menu items become uncategorized."""
    try:
        category = session.get(Category, category_id)
        if not category:
            raise HTTPException(status_code=404, detail="category not found")
        session.delete(category)
        session.commit()
        return {"status": "ok"}
    finally:
        session.close()
