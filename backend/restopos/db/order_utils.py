"""Order persistence helpers over the normalized Order/OrderItem/Transaction models.

These are the store-facing building blocks used by the ordering service; they
flush but never commit. The caller owns the transaction.
"""

from typing import Dict, Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from restopos.db.models import Order, OrderItem, Transaction
from restopos.utils.money import from_cents
from restopos.utils.time_utils import now_local_naive, isoformat_local


def create_order(
    session: Session,
    table_number: int,
    waiter_id: Optional[int],
    waiter_name: Optional[str],
    status: str,
    subtotal: int,
    discount_amount: int,
    total_price: int,
    customer_name: Optional[str] = None,
    discount_id: Optional[int] = None
) -> Order:
    """
    Insert an Order row and flush to get its id.

    Args:
        session: SQLAlchemy session
        table_number: Positive table number
        waiter_id: Attributed user (staff member or the online-orders user)
        waiter_name: Denormalized waiter name captured now
        status: Initial status
        subtotal, discount_amount, total_price: Totals in cents

    Returns:
        The flushed Order
    """
    order = Order(
        table_number=table_number,
        waiter_id=waiter_id,
        waiter_name=waiter_name,
        customer_name=customer_name,
        discount_id=discount_id,
        status=status,
        subtotal=subtotal,
        discount_amount=discount_amount,
        total_price=total_price
    )
    session.add(order)
    session.flush()
    return order


def create_order_item(
    session: Session,
    order: Order,
    menu_item_id: int,
    name: str,
    quantity: int,
    price: int
) -> OrderItem:
    """Insert one order line with the captured unit price (cents)."""
    order_item = OrderItem(
        menu_item_id=menu_item_id,
        name=name,
        quantity=quantity,
        price=price
    )
    order.items.append(order_item)
    session.flush()
    return order_item


def get_order(session: Session, order_id: int, for_update: bool = False) -> Optional[Order]:
    """Load an order with its lines and transactions."""
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items), selectinload(Order.transactions))
    )
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def list_orders(
    session: Session,
    status: Optional[List[str]] = None,
    waiter_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0
) -> List[Order]:
    """List orders newest first with optional status / waiter filters."""
    stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status:
        stmt = stmt.where(Order.status.in_(status))
    if waiter_id is not None:
        stmt = stmt.where(Order.waiter_id == waiter_id)
    stmt = stmt.offset(offset).limit(limit)
    return session.execute(stmt).scalars().all()


def update_order_status(session: Session, order: Order, status: str) -> Order:
    order.status = status
    order.updated_at = now_local_naive()
    session.flush()
    return order


def transition_status(
    session: Session,
    order: Order,
    from_statuses: List[str],
    to_status: str
) -> bool:
    """
    Compare-and-set the order status in one UPDATE.

    Returns:
        True if the order was in one of ``from_statuses`` and now has ``to_status``
    """
    result = session.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status.in_(from_statuses))
        .values(status=to_status, updated_at=now_local_naive())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    session.refresh(order, attribute_names=["status", "updated_at"])
    return True


def update_order_totals(
    session: Session,
    order: Order,
    subtotal: int,
    discount_amount: int,
    total_price: int
) -> Order:
    order.subtotal = subtotal
    order.discount_amount = discount_amount
    order.total_price = total_price
    order.updated_at = now_local_naive()
    session.flush()
    return order


def delete_order_items(session: Session, order: Order) -> None:
    """Remove all lines of an order (used when its lines are replaced)."""
    for item in list(order.items):
        order.items.remove(item)
    session.flush()


def create_transaction(
    session: Session,
    order_id: int,
    amount: int,
    payment_method: Optional[str]
) -> Transaction:
    """Insert a payment record (amount in cents)."""
    transaction = Transaction(
        order_id=order_id,
        amount=amount,
        payment_method=payment_method
    )
    session.add(transaction)
    session.flush()
    return transaction


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "quantity": item.quantity,
        "price": from_cents(item.price),
        "line_total": from_cents(item.line_total),
    }


def order_to_dict(order: Order, include_items: bool = True) -> Dict[str, Any]:
    """Convert an Order to its API shape (amounts as Decimal)."""
    data = {
        "id": order.id,
        "table_number": order.table_number,
        "waiter_id": order.waiter_id,
        "waiter_name": order.waiter_name,
        "customer_name": order.customer_name,
        "discount_id": order.discount_id,
        "status": order.status,
        "subtotal": from_cents(order.subtotal),
        "discount_amount": from_cents(order.discount_amount),
        "total_price": from_cents(order.total_price),
        "created_at": isoformat_local(order.created_at),
        "updated_at": isoformat_local(order.updated_at),
    }
    if include_items:
        data["items"] = [order_item_to_dict(item) for item in order.items]
    return data


def build_receipt(order: Order, transaction: Transaction) -> Dict[str, Any]:
    """
    Build the printable receipt for a paid order.

    Returns a dictionary with:
    - order_id, table_number, waiter_name
    - items: list of {name, quantity, unit_price, line_total}
    - subtotal, discount_amount, total_price
    - payment_method, paid_at, transaction_id
    """
    return {
        "order_id": order.id,
        "table_number": order.table_number,
        "waiter_name": order.waiter_name,
        "status": order.status,
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": from_cents(item.price),
                "line_total": from_cents(item.line_total),
            }
            for item in order.items
        ],
        "subtotal": from_cents(order.subtotal),
        "discount_amount": from_cents(order.discount_amount),
        "total_price": from_cents(order.total_price),
        "payment_method": transaction.payment_method,
        "transaction_id": transaction.id,
        "paid_at": isoformat_local(transaction.created_at),
    }
