"""Auth endpoints: login and current user."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request

from restopos.api.schemas import LoginRequest, TokenResponse, UserResponse
from restopos.db.models import User, DEFAULT_PARTY
from restopos.db.dependencies import (
    get_sqlalchemy_session,
    get_current_user,
    verify_password,
    create_access_token,
    ACCESS_TOKEN_EXPIRE_MINUTES
)
from restopos.db.user_utils import find_user_by_username, is_system_user, user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse, summary="Login and get JWT token")
async def login_user(request: LoginRequest, req: Request):
    """
    Authenticate a staff member and return a JWT access token.

    The party label must match the user's party (defaults to the house party).
    """
    session = get_sqlalchemy_session(req)
    try:
        user = find_user_by_username(session, request.username)
        party = request.party or DEFAULT_PARTY
        if (
            not user
            or is_system_user(user)
            or user.party != party
            or not verify_password(request.password, user.password_hash)
        ):
            logger.info("Failed login for %r", request.username)
            raise HTTPException(status_code=401, detail="Invalid credentials")

        access_token = create_access_token(
            data={"sub": str(user.id), "role": user.role},
            expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        )

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            user=UserResponse(**user_to_dict(user))
        )
    finally:
        session.close()


@router.get("/me", response_model=UserResponse, summary="Current user")
async def read_current_user(current_user: User = Depends(get_current_user)):
    return user_to_dict(current_user)
