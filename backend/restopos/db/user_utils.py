"""User lookup/creation helpers, including the synthetic online-orders user."""

import logging
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from restopos.db.models import User, ROLE_WAITER, DEFAULT_PARTY
from restopos.db.dependencies import hash_password
from restopos.errors import PersistenceError
from restopos.utils.time_utils import isoformat_local

logger = logging.getLogger(__name__)

ONLINE_WAITER_USERNAME = "online_orders"
ONLINE_WAITER_NAME = "Online Orders"


def find_user_by_username(session: Session, username: str) -> Optional[User]:
    return session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()


def create_user(
    session: Session,
    name: str,
    username: str,
    password: str,
    role: str,
    party: Optional[str] = None
) -> User:
    """
    Insert a user with a hashed password and flush to get its id.

    Raises:
        IntegrityError: If the username is already taken
    """
    user = User(
        name=name,
        username=username,
        password_hash=hash_password(password),
        role=role,
        party=party or DEFAULT_PARTY
    )
    session.add(user)
    session.flush()
    return user


def is_system_user(user: Optional[User]) -> bool:
    return user is not None and user.username == ONLINE_WAITER_USERNAME


def get_or_create_system_user(storage) -> int:
    """
    Return the id of the synthetic user public orders are attributed to.

    Runs in its own short transaction ahead of the order transaction. Two
    first-ever public orders can both miss the lookup; the loser's insert
    fails on the unique username and it simply re-reads the winner's row.

    Args:
        storage: SQLAlchemyStorage

    Returns:
        User id of the online-orders user
    """
    session = storage._get_session()
    try:
        existing = find_user_by_username(session, ONLINE_WAITER_USERNAME)
        if existing:
            return existing.id

        try:
            # Random credential: this account can never log in
            user = create_user(
                session,
                name=ONLINE_WAITER_NAME,
                username=ONLINE_WAITER_USERNAME,
                password=secrets.token_urlsafe(32),
                role=ROLE_WAITER,
            )
            session.commit()
            logger.info("Created online-orders system user (id=%s)", user.id)
            return user.id
        except IntegrityError:
            session.rollback()
            existing = find_user_by_username(session, ONLINE_WAITER_USERNAME)
            if existing is None:
                raise
            return existing.id
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(f"Could not resolve online-orders user: {exc}") from exc
    finally:
        session.close()


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "role": user.role,
        "party": user.party,
        "created_at": isoformat_local(user.created_at),
    }
