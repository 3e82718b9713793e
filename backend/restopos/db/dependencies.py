"""FastAPI dependencies for storage/session injection and auth."""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, HTTPException, Depends, Query
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from restopos.db.models import User, ROLE_ADMIN, ROLES


def get_storage(request: Request):
    """Return the storage handle created at startup (``app.state.storage``)."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Storage not initialized")
    return storage


def get_sqlalchemy_session(request: Request) -> Session:
    """Get a new SQLAlchemy session from the app storage (caller must close)."""
    return get_storage(request)._get_session()


# ---------- Auth helpers ----------

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"}
    )


def _user_from_token(request: Request, token: Optional[str]) -> User:
    if not token:
        raise _credentials_exception()
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise _credentials_exception()
    except JWTError:
        raise _credentials_exception()

    session = get_sqlalchemy_session(request)
    try:
        user = session.query(User).filter(User.id == int(user_id)).first()
        if user is None or user.role not in ROLES:
            raise _credentials_exception()
        return user
    finally:
        session.close()


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme)
) -> User:
    """Get the current staff user from the bearer JWT."""
    return _user_from_token(request, token)


def get_stream_user(
    request: Request,
    token: Optional[str] = Query(None, description="JWT (EventSource cannot send headers)")
) -> User:
    """Authenticate an SSE client through the ``token`` query parameter."""
    return _user_from_token(request, token)


def require_staff(current_user: User = Depends(get_current_user)) -> User:
    """Require an Admin or Waiter."""
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require an admin user."""
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return current_user
