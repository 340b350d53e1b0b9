"""Pydantic schemas for historical orders."""
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict


class OrderStatus(str, Enum):
    """Customer-facing order status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """A line item as it was purchased. `id` is the product id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    quantity: int
    unit_price: Decimal
    image: str = ""


class ShippingSnapshot(BaseModel):
    """Denormalized copy of the address an order shipped to."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    street: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "NL"


class Order(BaseModel):
    """A fetched order. Never mutated locally, only replaced on refetch."""

    model_config = ConfigDict(frozen=True)

    id: str
    order_number: str
    date: str
    status: OrderStatus
    total: Decimal
    items: tuple[OrderItem, ...] = ()
    shipping_address: ShippingSnapshot = ShippingSnapshot()
    tracking_code: str | None = None
