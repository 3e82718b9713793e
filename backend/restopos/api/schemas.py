"""
Request/response models shared by the API routers.

Field names are snake_case in Python and camelCase on the wire. Amounts are
``Decimal`` with two places. Order intake bodies are loosely typed on purpose:
the ordering service validates them and answers 400 with a typed error kind.
"""

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase aliases."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---------- Users / auth ----------

class UserResponse(CamelModel):
    id: int
    name: str
    username: str
    role: str
    party: str
    created_at: str


class CreateUserRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    role: str
    party: Optional[str] = None


class LoginRequest(CamelModel):
    username: str
    password: str
    party: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse


# ---------- Categories / menu ----------

class CategoryResponse(CamelModel):
    id: int
    name: str
    created_at: str


class CreateCategoryRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class MenuItemResponse(CamelModel):
    id: int
    name: str
    price: Decimal
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    stock: int
    available: bool
    image_url: Optional[str] = None
    created_at: str


class PublicMenuItemResponse(CamelModel):
    """What customers see: no stock counts."""
    id: int
    name: str
    price: Decimal
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    image_url: Optional[str] = None


class CreateMenuItemRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    category_id: Optional[int] = None
    stock: int = Field(0, ge=0)
    available: bool = True
    image_url: Optional[str] = None


class UpdateMenuItemRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0)
    category_id: Optional[int] = None
    stock: Optional[int] = Field(None, ge=0)
    available: Optional[bool] = None
    image_url: Optional[str] = None


class ConsumeStockRequest(CamelModel):
    quantity: int = Field(..., gt=0)


# ---------- Discounts ----------

class DiscountResponse(CamelModel):
    id: int
    name: str
    type: str
    value: Decimal
    active: bool
    created_at: str


class CreateDiscountRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str
    value: Decimal = Field(..., ge=0)
    active: bool = True


class UpdateDiscountRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    value: Optional[Decimal] = Field(None, ge=0)
    active: Optional[bool] = None


# ---------- Orders ----------

class CreateOrderRequest(CamelModel):
    table_number: Any = None
    items: Any = None
    discount_id: Any = None


class PublicOrderRequest(CamelModel):
    customer_name: Any = None
    table_number: Any = None
    items: Any = None


class UpdateOrderItemsRequest(CamelModel):
    items: Any = None
    discount_id: Any = None


class UpdateOrderStatusRequest(CamelModel):
    status: Any = None


class CheckoutRequest(CamelModel):
    payment_method: Any = None


class WalkUpCheckoutRequest(CamelModel):
    table_number: Any = None
    items: Any = None
    discount_id: Any = None
    payment_method: Any = None


class OrderItemResponse(CamelModel):
    id: int
    menu_item_id: Optional[int] = None
    name: str
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderResponse(CamelModel):
    id: int
    table_number: int
    waiter_id: Optional[int] = None
    waiter_name: Optional[str] = None
    customer_name: Optional[str] = None
    discount_id: Optional[int] = None
    status: str
    subtotal: Decimal
    discount_amount: Decimal
    total_price: Decimal
    created_at: str
    updated_at: Optional[str] = None
    items: List[OrderItemResponse] = []


class PublicOrderResponse(CamelModel):
    order_id: int
    status: str


class ReceiptLine(CamelModel):
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class ReceiptResponse(CamelModel):
    order_id: int
    table_number: int
    waiter_name: Optional[str] = None
    status: str
    items: List[ReceiptLine]
    subtotal: Decimal
    discount_amount: Decimal
    total_price: Decimal
    payment_method: Optional[str] = None
    transaction_id: int
    paid_at: str


# ---------- Transactions / reports ----------

class TransactionResponse(CamelModel):
    id: int
    order_id: int
    amount: Decimal
    payment_method: Optional[str] = None
    created_at: str


class UpdateTransactionRequest(CamelModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = Field(None, min_length=1, max_length=50)


class SalesTotalResponse(CamelModel):
    period: str
    total: Decimal


class MostSoldItemResponse(CamelModel):
    name: str
    total_quantity: int
    total_revenue: Decimal


# ---------- Public notifications ----------

class CallWaiterRequest(CamelModel):
    table_number: Any = None
    customer_name: Optional[str] = None


class NotificationResponse(CamelModel):
    id: str
    type: str
    table_number: int
    customer_name: Optional[str] = None
    created_at: str
