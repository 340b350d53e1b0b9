"""Pydantic schemas for cart items produced by a reorder."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class CartItem(BaseModel):
    """
    A cart line ready to be handed to the cart.

    `unit_price` is the current catalog price; `historical_price` is what the
    customer paid on the original order and is kept for display only.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    historical_price: Decimal
    image: str = ""
