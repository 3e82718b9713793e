"""Storage layer for the restaurant POS."""

from .sqlalchemy_adapter import SQLAlchemyStorage, DEFAULT_DATABASE_URL

__all__ = ["SQLAlchemyStorage", "DEFAULT_DATABASE_URL"]
