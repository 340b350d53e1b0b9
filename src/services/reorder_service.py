"""Reprices a historical order's items at current catalog prices for a reorder."""
import logging
from decimal import Decimal
from typing import Any

from clients.commerce import CatalogClient
from schemas.cart import CartItem
from schemas.order import Order
from services.customer_mapping import to_decimal
from services.exceptions import PricingUnavailable, SyncError

logger = logging.getLogger(__name__)


class ReorderPriceResolver:
    """
    Turns an Order into cart items priced at what the products cost today.

    The price a customer paid on the original order is never reused as the
    cart price unless the catalog has no price for the product.
    """

    def __init__(self, catalog: CatalogClient) -> None:
        self._catalog = catalog

    async def resolve(self, order: Order) -> list[CartItem]:
        """
        Build cart items for every item on the order, quantities preserved.

        All product ids are priced in a single catalog call. Per product the
        unit price is the regular price, else the sale price, else the
        historical price. If the catalog call fails every item keeps its
        historical price.
        """
        product_ids = list(dict.fromkeys(item.id for item in order.items if item.id))
        try:
            prices = await self._current_prices(product_ids)
        except PricingUnavailable as e:
            logger.warning(
                "reorder_pricing_unavailable order_id=%s error=%s", order.id, e,
            )
            prices = {}

        return [
            CartItem(
                product_id=item.id,
                name=item.name,
                quantity=item.quantity,
                unit_price=prices.get(item.id, item.unit_price),
                historical_price=item.unit_price,
                image=item.image,
            )
            for item in order.items
        ]

    async def _current_prices(self, product_ids: list[str]) -> dict[str, Decimal]:
        if not product_ids:
            return {}
        try:
            products = await self._catalog.get_prices(product_ids)
        except SyncError as e:
            raise PricingUnavailable(str(e)) from e

        prices: dict[str, Decimal] = {}
        for product in products:
            price = _current_price(product)
            if price is not None:
                prices[str(product.get("id"))] = price
        missing = [pid for pid in product_ids if pid not in prices]
        if missing:
            logger.info("reorder_prices_missing product_ids=%s", ",".join(missing))
        return prices


def _current_price(product: dict[str, Any]) -> Decimal | None:
    # Empty strings mean "no price"; fall through to the next source
    regular = to_decimal(product.get("regular_price"), default=None)
    if regular is not None:
        return regular
    return to_decimal(product.get("price"), default=None)
