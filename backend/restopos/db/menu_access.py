"""Menu lookups and stock mutation helpers."""

from typing import Dict, Iterable, List, Optional, Any

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session, joinedload

from restopos.db.models import MenuItem, Category
from restopos.utils.money import from_cents
from restopos.utils.time_utils import isoformat_local


def get_menu_items_by_ids(session: Session, ids: Iterable[int]) -> Dict[int, MenuItem]:
    """
    Batch-load menu items by id.

    Args:
        session: SQLAlchemy session
        ids: Menu item ids (duplicates ignored)

    Returns:
        Mapping of id -> MenuItem for the ids that exist
    """
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return {}
    # populate_existing: stock may have moved under us via bulk UPDATEs
    stmt = (
        select(MenuItem)
        .where(MenuItem.id.in_(unique_ids))
        .execution_options(populate_existing=True)
    )
    return {item.id: item for item in session.execute(stmt).scalars().all()}


def list_menu_items(session: Session, available_only: bool = False) -> List[MenuItem]:
    """
    List menu items ordered by category name then item name.

    Args:
        session: SQLAlchemy session
        available_only: Only items that can currently be ordered (available and in stock)
    """
    stmt = (
        select(MenuItem)
        .outerjoin(Category, MenuItem.category_id == Category.id)
        .options(joinedload(MenuItem.category))
        .order_by(Category.name, MenuItem.name)
    )
    if available_only:
        stmt = stmt.where(MenuItem.available.is_(True)).where(MenuItem.stock > 0)
    return session.execute(stmt).scalars().all()


def reserve_stock(session: Session, menu_item_id: int, quantity: int) -> bool:
    """
    Atomically take ``quantity`` units if (and only if) enough are left.

    Issues a single conditional UPDATE so two concurrent orders can never
    both pass a stale stock check.

    Returns:
        True if the stock was decremented, False if there was not enough
    """
    stmt = (
        update(MenuItem)
        .where(MenuItem.id == menu_item_id)
        .where(MenuItem.stock >= quantity)
        .values(stock=MenuItem.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    return result.rowcount == 1


def consume_stock(session: Session, menu_item_id: int, quantity: int) -> bool:
    """
    Decrement stock with a floor at zero (``stock = max(0, stock - qty)``).

    Returns:
        True if the menu item exists
    """
    stmt = (
        update(MenuItem)
        .where(MenuItem.id == menu_item_id)
        .values(stock=case((MenuItem.stock > quantity, MenuItem.stock - quantity), else_=0))
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    return result.rowcount == 1


def restock(session: Session, menu_item_id: Optional[int], quantity: int) -> None:
    """Return ``quantity`` units to stock (no-op for deleted menu items)."""
    if menu_item_id is None or quantity <= 0:
        return
    stmt = (
        update(MenuItem)
        .where(MenuItem.id == menu_item_id)
        .values(stock=MenuItem.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    session.execute(stmt)


def get_stock(session: Session, menu_item_id: int) -> Optional[int]:
    """Read the current stock straight from the database."""
    return session.execute(
        select(MenuItem.stock).where(MenuItem.id == menu_item_id)
    ).scalar_one_or_none()


def menu_item_to_dict(item: MenuItem) -> Dict[str, Any]:
    """Convert a MenuItem to its API shape (price as Decimal)."""
    return {
        "id": item.id,
        "name": item.name,
        "price": from_cents(item.price),
        "category_id": item.category_id,
        "category_name": item.category.name if item.category else None,
        "stock": item.stock,
        "available": bool(item.available),
        "image_url": item.image_url,
        "created_at": isoformat_local(item.created_at),
    }
