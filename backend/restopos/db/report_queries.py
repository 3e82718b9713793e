"""
Read-only sales report queries.

All windows are half-open ``[start, end)`` over naive local timestamps (see
``time_utils``). Only payments of orders that are still ``Paid`` count.
"""

from datetime import date, datetime
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from restopos.db.models import Order, OrderItem, Transaction, STATUS_PAID
from restopos.utils.money import from_cents
from restopos.utils.time_utils import (
    day_bounds,
    range_bounds,
    month_bounds,
    year_bounds,
    isoformat_local,
)

MOST_SOLD_LIMIT = 5


def _paid_transactions(start: datetime, end: datetime):
    return (
        select(Transaction)
        .join(Order, Transaction.order_id == Order.id)
        .where(Order.status == STATUS_PAID)
        .where(Transaction.created_at >= start)
        .where(Transaction.created_at < end)
    )


def sales_total(session: Session, start: datetime, end: datetime) -> int:
    """Sum of paid transaction amounts in the window (cents)."""
    stmt = (
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .join(Order, Transaction.order_id == Order.id)
        .where(Order.status == STATUS_PAID)
        .where(Transaction.created_at >= start)
        .where(Transaction.created_at < end)
    )
    return int(session.execute(stmt).scalar_one())


def list_transactions(session: Session, start: datetime, end: datetime) -> List[Transaction]:
    stmt = _paid_transactions(start, end).order_by(Transaction.created_at, Transaction.id)
    return session.execute(stmt).scalars().all()


def daily_sales(session: Session, day: date) -> int:
    return sales_total(session, *day_bounds(day))


def monthly_sales(session: Session, year: int, month: int) -> int:
    return sales_total(session, *month_bounds(year, month))


def daily_transactions(session: Session, day: date) -> List[Transaction]:
    return list_transactions(session, *day_bounds(day))


def range_transactions(session: Session, start_day: date, end_day: date) -> List[Transaction]:
    """Transactions from ``start_day`` through ``end_day`` inclusive."""
    return list_transactions(session, *range_bounds(start_day, end_day))


def monthly_transactions(session: Session, year: int, month: int) -> List[Transaction]:
    return list_transactions(session, *month_bounds(year, month))


def yearly_transactions(session: Session, year: int) -> List[Transaction]:
    return list_transactions(session, *year_bounds(year))


def most_sold_items(
    session: Session,
    start_day: date,
    end_day: date,
    limit: int = MOST_SOLD_LIMIT
) -> List[Dict[str, Any]]:
    """
    Best sellers by quantity over paid orders created in the date range.

    Lines are grouped by their captured name, so items deleted from the menu
    since still show up.

    Returns:
        List of {name, total_quantity, total_revenue} dicts, best first
    """
    start, end = range_bounds(start_day, end_day)
    total_quantity = func.sum(OrderItem.quantity).label("total_quantity")
    total_revenue = func.sum(OrderItem.quantity * OrderItem.price).label("total_revenue")
    stmt = (
        select(OrderItem.name, total_quantity, total_revenue)
        .join(Order, OrderItem.order_id == Order.id)
        .where(Order.status == STATUS_PAID)
        .where(Order.created_at >= start)
        .where(Order.created_at < end)
        .group_by(OrderItem.name)
        .order_by(total_quantity.desc(), OrderItem.name)
        .limit(limit)
    )
    return [
        {
            "name": row.name,
            "total_quantity": int(row.total_quantity),
            "total_revenue": from_cents(int(row.total_revenue)),
        }
        for row in session.execute(stmt).all()
    ]


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "order_id": transaction.order_id,
        "amount": from_cents(transaction.amount),
        "payment_method": transaction.payment_method,
        "created_at": isoformat_local(transaction.created_at),
    }
