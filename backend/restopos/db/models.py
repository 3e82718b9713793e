"""
Canonical relational database models for the restaurant POS.

These models represent the full relational schema and are used by Alembic
for migration generation. Money columns hold integer cents.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import declarative_base, relationship

from restopos.utils.time_utils import now_local_naive

Base = declarative_base()


ROLE_ADMIN = "Admin"
ROLE_WAITER = "Waiter"
ROLES = (ROLE_ADMIN, ROLE_WAITER)

STATUS_PENDING = "Pending"
STATUS_SERVED = "Served"
STATUS_PAID = "Paid"
STATUS_CANCELLED = "Cancelled"
ORDER_STATUSES = (STATUS_PENDING, STATUS_SERVED, STATUS_PAID, STATUS_CANCELLED)

DISCOUNT_PERCENTAGE = "Percentage"
DISCOUNT_FIXED = "Fixed"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

DEFAULT_PARTY = "cafe and restaurents"


class User(Base):
    """Staff accounts (Admin / Waiter) plus the synthetic online-orders user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    username = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, index=True)  # Admin | Waiter
    party = Column(String(255), nullable=False, default=DEFAULT_PARTY)
    created_at = Column(DateTime, default=now_local_naive, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('Admin', 'Waiter')", name="ck_users_role"),
    )

    orders = relationship("Order", back_populates="waiter", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"


class Category(Base):
    """Menu category; deleting one leaves its items uncategorized."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=now_local_naive, nullable=False)

    items = relationship("MenuItem", back_populates="category", passive_deletes=True)

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name})>"


class MenuItem(Base):
    """Orderable menu entry with live price and stock."""

    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)  # Stored as cents (int) for accuracy
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    stock = Column(Integer, nullable=False, default=1)
    available = Column(Boolean, nullable=False, default=True)
    image_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=now_local_naive, nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_menu_items_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
        Index("idx_menu_items_available", "available"),
    )

    category = relationship("Category", back_populates="items")

    @property
    def orderable(self) -> bool:
        return bool(self.available) and (self.stock or 0) > 0

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name={self.name}, price={self.price}, stock={self.stock})>"


class Order(Base):
    """Restaurant order for a table."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    table_number = Column(Integer, nullable=False)
    waiter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    waiter_name = Column(String(255), nullable=True)  # Denormalized at creation
    customer_name = Column(String(255), nullable=True)  # Public orders only
    discount_id = Column(Integer, ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default="Pending", nullable=False)
    subtotal = Column(Integer, nullable=False, default=0)  # cents
    discount_amount = Column(Integer, nullable=False, default=0)  # cents
    total_price = Column(Integer, nullable=False, default=0)  # cents
    created_at = Column(DateTime, default=now_local_naive, nullable=False, index=True)
    updated_at = Column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)

    __table_args__ = (
        CheckConstraint("table_number > 0", name="ck_orders_table_number_positive"),
        CheckConstraint("status IN ('Pending', 'Served', 'Paid', 'Cancelled')", name="ck_orders_status"),
        CheckConstraint(
            "subtotal >= 0 AND discount_amount >= 0 AND discount_amount <= subtotal "
            "AND total_price = subtotal - discount_amount",
            name="ck_orders_totals"
        ),
        Index("idx_orders_status", "status"),
    )

    waiter = relationship("User", back_populates="orders")
    discount = relationship("Discount")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id"
    )
    transactions = relationship(
        "Transaction",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Transaction.id"
    )

    def __repr__(self):
        return f"<Order(id={self.id}, table={self.table_number}, status={self.status})>"


class OrderItem(Base):
    """Individual line in an order with the price captured at order time."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)  # Snapshot of the menu item name
    quantity = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)  # Unit price in cents (snapshot)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    @property
    def line_total(self) -> int:
        return self.price * self.quantity

    def __repr__(self):
        return f"<OrderItem(id={self.id}, name={self.name}, qty={self.quantity}, price={self.price})>"


class Discount(Base):
    """Percentage or fixed-amount discount.

    ``value`` is in hundredths: cents for Fixed, hundredths of a percent for
    Percentage (1250 == 12.5%).
    """

    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    value = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=now_local_naive, nullable=False)

    __table_args__ = (
        CheckConstraint("type IN ('Percentage', 'Fixed')", name="ck_discounts_type"),
        CheckConstraint("value >= 0", name="ck_discounts_value_non_negative"),
        Index("idx_discounts_active", "active"),
    )

    def __repr__(self):
        return f"<Discount(id={self.id}, name={self.name}, type={self.type}, value={self.value})>"


class Transaction(Base):
    """Payment record for an order."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # cents
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=now_local_naive, nullable=False, index=True)

    order = relationship("Order", back_populates="transactions")

    def __repr__(self):
        return f"<Transaction(id={self.id}, order_id={self.order_id}, amount={self.amount})>"
