"""Admin user management API."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos.api.schemas import CamelModel, CreateUserRequest, UserResponse
from restopos.db.models import User, ROLES
from restopos.db.dependencies import get_sqlalchemy_session, require_admin, hash_password
from restopos.db.user_utils import (
    ONLINE_WAITER_USERNAME,
    create_user as insert_user,
    find_user_by_username,
    is_system_user,
    user_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class UpdateUserRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[str] = None
    party: Optional[str] = None
    password: Optional[str] = None


def _validate_role(role: str) -> str:
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role: {role} (expected one of {', '.join(ROLES)})")
    return role


@router.get("", response_model=List[UserResponse], summary="List users (admin-only)")
async def list_users(
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        users = session.execute(
            select(User)
            .where(User.username != ONLINE_WAITER_USERNAME)
            .order_by(User.created_at.desc(), User.id.desc())
        ).scalars().all()
        return [user_to_dict(user) for user in users]
    finally:
        session.close()


@router.post("", response_model=UserResponse, status_code=201, summary="Create user (admin-only)")
async def create_user(
    request: CreateUserRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        role = _validate_role(request.role)
        if request.username == ONLINE_WAITER_USERNAME or find_user_by_username(session, request.username):
            raise HTTPException(status_code=409, detail="username already exists")

        user = insert_user(
            session,
            name=request.name,
            username=request.username,
            password=request.password,
            role=role,
            party=request.party
        )
        session.commit()
        logger.info("User %s created by %s", user.username, admin.username)
        return user_to_dict(user)
    finally:
        session.close()


@router.put("/{user_id}", response_model=UserResponse, summary="Update user (admin-only)")
async def update_user(
    user_id: int,
    request: UpdateUserRequest,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    try:
        user = session.get(User, user_id)
        if not user or is_system_user(user):
            raise HTTPException(status_code=404, detail="user not found")

        if request.name is not None:
            user.name = request.name
        if request.role is not None:
            user.role = _validate_role(request.role)
        if request.party is not None:
            user.party = request.party
        if request.password is not None:
            if not request.password:
                raise HTTPException(status_code=400, detail="password cannot be empty")
            user.password_hash = hash_password(request.password)

        session.commit()
        return user_to_dict(user)
    finally:
        session.close()


@router.delete("/{user_id}", summary="Delete user (admin-only)")
async def delete_user(
    user_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    admin: User = Depends(require_admin)
):
    """Delete a staff account; their past orders keep the waiter name."""
    try:
        user = session.get(User, user_id)
        if not user or is_system_user(user):
            raise HTTPException(status_code=404, detail="user not found")
        if user.id == admin.id:
            raise HTTPException(status_code=400, detail="Cannot delete yourself")

        session.delete(user)
        session.commit()
        logger.info("User %s deleted by %s", user.username, admin.username)
        return {"status": "ok"}
    finally:
        session.close()
