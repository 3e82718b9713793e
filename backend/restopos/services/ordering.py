"""
Order intake and checkout pipeline.

Every function here works inside the caller's transaction (see
``SQLAlchemyStorage.transaction``): it flushes but never commits, and raises a
typed ``OrderError`` on any business failure so the whole unit rolls back.

Stock is taken when an order is created (staff, public and walk-up alike) and
given back when an open order is cancelled or its lines are replaced.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from restopos.db import menu_access, order_utils
from restopos.db.models import (
    Discount,
    Order,
    Transaction,
    User,
    ORDER_STATUSES,
    STATUS_PENDING,
    STATUS_SERVED,
    STATUS_PAID,
    STATUS_CANCELLED,
)
from restopos.errors import (
    ValidationError,
    MenuItemNotFoundError,
    UnavailableError,
    InsufficientStockError,
    OrderNotFoundError,
    InvalidStateError,
)
from restopos.services.discounts import Totals, apply_discount

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Cash"
MAX_PAYMENT_METHOD_LENGTH = 50
MAX_CUSTOMER_NAME_LENGTH = 100

# Upper bound of the INTEGER id, table and quantity columns
MAX_INT = 2**31 - 1

# Orders in these states still hold their stock and can be paid or edited
OPEN_STATUSES = (STATUS_PENDING, STATUS_SERVED)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_SERVED, STATUS_PAID, STATUS_CANCELLED},
    STATUS_SERVED: {STATUS_PAID, STATUS_CANCELLED},
    STATUS_PAID: set(),
    STATUS_CANCELLED: set(),
}


@dataclass(frozen=True)
class PricedLine:
    """One validated order line priced from the stored menu row (cents)."""
    menu_item_id: int
    name: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


# ---------- input validation ----------

def _coerce_int(value: Any) -> Optional[int]:
    """Accept ints, integral floats and numeric strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _positive_int(value: Any) -> Optional[int]:
    """A positive integer that fits the INTEGER columns, else None."""
    number = _coerce_int(value)
    if number is None or number <= 0 or number > MAX_INT:
        return None
    return number


def _line_field(line: Any, *names: str) -> Any:
    if isinstance(line, dict):
        for name in names:
            if name in line:
                return line[name]
        return None
    for name in names:
        if hasattr(line, name):
            return getattr(line, name)
    return None


def validate_table_number(value: Any) -> int:
    table_number = _positive_int(value)
    if table_number is None:
        raise ValidationError("Table number must be a positive integer")
    return table_number


def validate_customer_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Customer name is required")
    name = value.strip()
    if len(name) > MAX_CUSTOMER_NAME_LENGTH:
        raise ValidationError("Customer name is too long")
    return name


def validate_payment_method(value: Any) -> str:
    if value is None:
        return DEFAULT_PAYMENT_METHOD
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Payment method must be a non-empty string")
    method = value.strip()
    if len(method) > MAX_PAYMENT_METHOD_LENGTH:
        raise ValidationError("Payment method is too long")
    return method


def normalize_lines(items: Any) -> Dict[int, int]:
    """
    Validate raw order lines and coalesce them by menu item.

    Args:
        items: List of ``{"menuItemId", "quantity"}`` mappings (snake_case keys
            and objects with attributes are accepted too)

    Returns:
        Ordered mapping menu_item_id -> total quantity, in first-seen order

    Raises:
        ValidationError: Empty/non-list input or a malformed line
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("Order must contain at least one item")

    quantities: Dict[int, int] = {}
    for line in items:
        if line is None or isinstance(line, (str, int, float, bool)):
            raise ValidationError("Each item must be an object with menuItemId and quantity")
        menu_item_id = _positive_int(_line_field(line, "menuItemId", "menu_item_id"))
        quantity = _positive_int(_line_field(line, "quantity"))
        if menu_item_id is None:
            raise ValidationError("Each item needs a positive integer menuItemId")
        if quantity is None:
            raise ValidationError("Each item needs a positive integer quantity")
        quantities[menu_item_id] = quantities.get(menu_item_id, 0) + quantity
        if quantities[menu_item_id] > MAX_INT:
            raise ValidationError("Item quantity is too large")
    return quantities


# ---------- pricing ----------

def price_lines(session: Session, quantities: Dict[int, int]) -> List[PricedLine]:
    """
    Price coalesced lines against the stored menu rows in one batch fetch.

    Raises:
        MenuItemNotFoundError: An id does not exist
        UnavailableError: An item is switched off
        InsufficientStockError: Requested more than is in stock
    """
    menu = menu_access.get_menu_items_by_ids(session, quantities.keys())
    lines = []
    for menu_item_id, quantity in quantities.items():
        item = menu.get(menu_item_id)
        if item is None:
            raise MenuItemNotFoundError(menu_item_id)
        if not item.available:
            raise UnavailableError(menu_item_id)
        if item.stock < quantity:
            raise InsufficientStockError(menu_item_id)
        lines.append(PricedLine(menu_item_id, item.name, quantity, item.price))
    return lines


def resolve_discount(session: Session, discount_id: Any) -> Optional[Discount]:
    """Load an active discount by id; ``None`` means no discount."""
    if discount_id is None:
        return None
    parsed = _positive_int(discount_id)
    if parsed is None:
        raise ValidationError("Invalid discount id")
    discount = session.get(Discount, parsed)
    if discount is None or not discount.active:
        raise ValidationError("Discount not found or inactive")
    return discount


def compute_totals(lines: Iterable[PricedLine], discount: Optional[Discount] = None) -> Totals:
    return apply_discount(sum(line.line_total for line in lines), discount)


# ---------- persistence steps ----------

def _reserve(session: Session, lines: List[PricedLine]) -> None:
    for line in lines:
        if not menu_access.reserve_stock(session, line.menu_item_id, line.quantity):
            # Someone else took the stock between our read and our write
            raise InsufficientStockError(line.menu_item_id)


def _release(session: Session, order: Order) -> None:
    for item in order.items:
        menu_access.restock(session, item.menu_item_id, item.quantity)


def _add_lines(session: Session, order: Order, lines: List[PricedLine]) -> None:
    for line in lines:
        order_utils.create_order_item(
            session,
            order,
            menu_item_id=line.menu_item_id,
            name=line.name,
            quantity=line.quantity,
            price=line.unit_price
        )


def _create_order(
    session: Session,
    *,
    table_number: int,
    waiter: Optional[User],
    status: str,
    lines: List[PricedLine],
    discount: Optional[Discount],
    customer_name: Optional[str] = None
) -> Order:
    totals = compute_totals(lines, discount)
    order = order_utils.create_order(
        session,
        table_number=table_number,
        waiter_id=waiter.id if waiter else None,
        waiter_name=waiter.name if waiter else None,
        status=status,
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        total_price=totals.total_price,
        customer_name=customer_name,
        discount_id=discount.id if discount else None
    )
    _add_lines(session, order, lines)
    _reserve(session, lines)
    return order


def _load_order(session: Session, order_id: int, for_update: bool = False) -> Order:
    order = order_utils.get_order(session, order_id, for_update=for_update)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


# ---------- operations ----------

def place_staff_order(
    session: Session,
    waiter: User,
    table_number: Any,
    items: Any,
    discount_id: Any = None
) -> Order:
    """
    Create a Pending order for a logged-in staff member.

    Args:
        session: Session inside an open transaction
        waiter: The authenticated Admin/Waiter placing the order
        table_number: Table number (positive integer)
        items: Raw lines ``[{"menuItemId": int, "quantity": int}, ...]``
        discount_id: Optional active discount to apply

    Returns:
        The flushed Order with its items
    """
    table = validate_table_number(table_number)
    lines = price_lines(session, normalize_lines(items))
    discount = resolve_discount(session, discount_id)

    order = _create_order(
        session,
        table_number=table,
        waiter=waiter,
        status=STATUS_PENDING,
        lines=lines,
        discount=discount
    )
    logger.info(
        "Order %s placed by %s for table %s (%d lines, total %s cents)",
        order.id, waiter.username, table, len(lines), order.total_price
    )
    return order


def check_public_order(customer_name: Any, table_number: Any, items: Any) -> None:
    """Input checks that need no database, run before the system user is resolved."""
    validate_customer_name(customer_name)
    validate_table_number(table_number)
    normalize_lines(items)


def place_public_order(
    session: Session,
    system_user_id: int,
    customer_name: Any,
    table_number: Any,
    items: Any
) -> Order:
    """
    Create a Pending order submitted by a customer from the public menu.

    The order is attributed to the online-orders system user; the caller
    resolves its id beforehand (``user_utils.get_or_create_system_user``).
    Public orders never carry a discount.
    """
    name = validate_customer_name(customer_name)
    table = validate_table_number(table_number)
    lines = price_lines(session, normalize_lines(items))

    system_user = session.get(User, system_user_id)
    order = _create_order(
        session,
        table_number=table,
        waiter=system_user,
        status=STATUS_PENDING,
        lines=lines,
        discount=None,
        customer_name=name
    )
    logger.info("Public order %s from %r at table %s", order.id, name, table)
    return order


def update_order_lines(
    session: Session,
    order_id: int,
    items: Any,
    discount_id: Any = None
) -> Order:
    """
    Replace the lines (and discount) of an open order and re-price it.

    The old quantities go back to stock before the new lines are checked, so
    an edit can reuse the units the order already holds.
    """
    order = _load_order(session, order_id, for_update=True)
    if order.status not in OPEN_STATUSES:
        raise InvalidStateError(f"Order {order_id} is {order.status} and cannot be edited")

    quantities = normalize_lines(items)
    _release(session, order)
    lines = price_lines(session, quantities)
    discount = resolve_discount(session, discount_id)
    totals = compute_totals(lines, discount)

    order_utils.delete_order_items(session, order)
    _add_lines(session, order, lines)
    order.discount_id = discount.id if discount else None
    order_utils.update_order_totals(
        session, order, totals.subtotal, totals.discount_amount, totals.total_price
    )
    _reserve(session, lines)

    logger.info("Order %s lines replaced (total %s cents)", order.id, order.total_price)
    return order


def change_order_status(session: Session, order_id: int, status: Any) -> Order:
    """
    Move an order along its lifecycle (Served / Cancelled).

    Setting the current status again is a no-op. Paid is reserved for
    checkout so that every Paid order has a transaction.
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown status: {status!r}")
    if status == STATUS_PAID:
        raise InvalidStateError("Use checkout to mark an order as paid")

    order = _load_order(session, order_id, for_update=True)
    if order.status == status:
        return order
    if status not in ALLOWED_TRANSITIONS[order.status]:
        raise InvalidStateError(f"Cannot change order {order_id} from {order.status} to {status}")

    if status == STATUS_CANCELLED:
        _release(session, order)
    order_utils.update_order_status(session, order, status)
    logger.info("Order %s is now %s", order.id, status)
    return order


def checkout_order(
    session: Session,
    order_id: int,
    payment_method: Any = None
) -> Tuple[Order, Transaction]:
    """
    Pay an existing order: flip it to Paid and record the transaction.

    The status flip is a compare-and-set on Pending/Served, so two concurrent
    checkouts of the same order cannot both succeed.

    Raises:
        OrderNotFoundError: Unknown order id
        InvalidStateError: Order already paid or cancelled
    """
    method = validate_payment_method(payment_method)
    order = _load_order(session, order_id, for_update=True)
    if order.status not in OPEN_STATUSES:
        raise InvalidStateError(f"Order {order_id} is {order.status} and cannot be paid")
    if not order_utils.transition_status(session, order, list(OPEN_STATUSES), STATUS_PAID):
        raise InvalidStateError(f"Order {order_id} was paid or cancelled concurrently")

    transaction = order_utils.create_transaction(session, order.id, order.total_price, method)
    logger.info(
        "Order %s paid: %s cents by %s (transaction %s)",
        order.id, order.total_price, method, transaction.id
    )
    return order, transaction


def walk_up_checkout(
    session: Session,
    waiter: User,
    table_number: Any,
    items: Any,
    payment_method: Any = None,
    discount_id: Any = None
) -> Tuple[Order, Transaction]:
    """Create an order directly as Paid and record its payment in one unit."""
    method = validate_payment_method(payment_method)
    table = validate_table_number(table_number)
    lines = price_lines(session, normalize_lines(items))
    discount = resolve_discount(session, discount_id)

    order = _create_order(
        session,
        table_number=table,
        waiter=waiter,
        status=STATUS_PAID,
        lines=lines,
        discount=discount
    )
    transaction = order_utils.create_transaction(session, order.id, order.total_price, method)
    logger.info(
        "Walk-up order %s paid: %s cents by %s (transaction %s)",
        order.id, order.total_price, method, transaction.id
    )
    return order, transaction


def delete_order(session: Session, order_id: int) -> None:
    """Hard-delete an order; open orders give their stock back first."""
    order = _load_order(session, order_id, for_update=True)
    if order.status in OPEN_STATUSES:
        _release(session, order)
    session.delete(order)
    session.flush()
    logger.info("Order %s deleted", order_id)
