"""
Typed error taxonomy for order intake and checkout.

Services raise these; the HTTP edge (``restopos.main``) maps ``ErrorKind`` to a
status code exactly once. Nothing classifies errors by message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_STOCK = "insufficient_stock"
    ORDER_NOT_FOUND = "order_not_found"
    INVALID_STATE = "invalid_state"
    PERSISTENCE = "persistence"


# Client faults -> 4xx, store failures -> 500
STATUS_FOR_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 400,
    ErrorKind.UNAVAILABLE: 400,
    ErrorKind.INSUFFICIENT_STOCK: 400,
    ErrorKind.ORDER_NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.PERSISTENCE: 500,
}

INTERNAL_ERROR_MESSAGE = "Internal error"


class OrderError(Exception):
    """Base class for order pipeline failures."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def status_code(self) -> int:
        return STATUS_FOR_KIND[self.kind]

    @property
    def is_client_fault(self) -> bool:
        return self.status_code < 500

    def public_message(self) -> str:
        """Message safe to show the caller (never leaks store internals)."""
        if self.is_client_fault:
            return self.message
        return INTERNAL_ERROR_MESSAGE


class ValidationError(OrderError):
    """Malformed or missing required input."""

    kind = ErrorKind.VALIDATION


class MenuItemNotFoundError(OrderError):
    """A referenced menu item id does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, menu_item_id: Optional[int] = None):
        super().__init__("Menu item not found", menu_item_id=menu_item_id)
        self.menu_item_id = menu_item_id


class UnavailableError(OrderError):
    """Menu item exists but is marked unavailable."""

    kind = ErrorKind.UNAVAILABLE

    def __init__(self, menu_item_id: Optional[int] = None):
        super().__init__("Menu item is unavailable", menu_item_id=menu_item_id)
        self.menu_item_id = menu_item_id


class InsufficientStockError(OrderError):
    """Requested quantity exceeds current stock."""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, menu_item_id: Optional[int] = None):
        super().__init__("Insufficient stock for one or more items", menu_item_id=menu_item_id)
        self.menu_item_id = menu_item_id


class OrderNotFoundError(OrderError):
    kind = ErrorKind.ORDER_NOT_FOUND

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found", order_id=order_id)
        self.order_id = order_id


class InvalidStateError(OrderError):
    """Order status does not allow the requested operation."""

    kind = ErrorKind.INVALID_STATE


class PersistenceError(OrderError):
    """Underlying store failure (connection, constraint, aborted transaction)."""

    kind = ErrorKind.PERSISTENCE
