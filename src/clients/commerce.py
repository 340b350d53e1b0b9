"""Clients for the WooCommerce customer, order and catalog endpoints."""
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from clients.api_client import (
    api_get,
    api_post,
    api_put,
    backend_errors,
    error_code,
    error_message,
)
from core.config import Settings
from services.exceptions import AuthFailure, BackendUnavailable, SyncError

logger = logging.getLogger(__name__)

SERVICE = "commerce"
CATALOG_SERVICE = "catalog"

EMAIL_EXISTS_CODE = "registration-error-email-exists"


class _WooCommerceClient:
    """Base for clients that authenticate with the WooCommerce consumer key pair."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._auth_params = {
            "consumer_key": settings.wc_consumer_key,
            "consumer_secret": settings.wc_consumer_secret,
        }

    def _params(self, **params: Any) -> dict[str, Any]:
        return {**self._auth_params, **params}


class CommerceClient(_WooCommerceClient):
    """Reads and writes the customer and order sub-resources."""

    async def find_customer_by_email(self, email: str) -> dict[str, Any] | None:
        """Return the first customer matching email, or None (also when the lookup is refused)."""
        try:
            with backend_errors(SERVICE):
                data = await api_get(
                    self._client,
                    "/wc/v3/customers",
                    params=self._params(email=email, role="all"),
                )
        except httpx.HTTPStatusError as e:
            logger.info("customer_lookup_refused status=%s", e.response.status_code)
            return None
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list) or not data:
            return None
        return data[0]

    async def create_customer(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a customer (and its WordPress user).

        Raises:
            AuthFailure: The registration was refused, e.g. the email is taken.
        """
        try:
            with backend_errors(SERVICE):
                return await api_post(
                    self._client,
                    "/wc/v3/customers",
                    json=payload,
                    params=self._params(),
                )
        except httpx.HTTPStatusError as e:
            message = error_message(e, "Kan account niet aanmaken")
            if error_code(e) == EMAIL_EXISTS_CODE or "al een account" in message:
                email = payload.get("email", "")
                raise AuthFailure(
                    f"Er is al een account geregistreerd met {email}. "
                    "Log in of gebruik een ander e-mailadres.",
                ) from e
            raise AuthFailure(message) from e

    async def update_customer(self, customer_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to a customer."""
        try:
            with backend_errors(SERVICE):
                return await api_put(
                    self._client,
                    f"/wc/v3/customers/{customer_id}",
                    json=payload,
                    params=self._params(),
                )
        except httpx.HTTPStatusError as e:
            raise SyncError(error_message(e, "Kan profiel niet bijwerken")) from e

    async def list_orders(self, customer_id: str) -> list[dict[str, Any]]:
        """
        Return the raw orders for a customer, newest first.

        Raises:
            BackendUnavailable: The order endpoint failed or refused the request.
        """
        try:
            with backend_errors(SERVICE):
                data = await api_get(
                    self._client,
                    "/wc/v3/orders",
                    params=self._params(customer=customer_id, per_page=100),
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(SERVICE, f"HTTP {e.response.status_code}") from e
        return data if isinstance(data, list) else []


class CatalogClient(_WooCommerceClient):
    """Reads live product prices. Used only to reprice reorders."""

    async def get_prices(self, product_ids: Sequence[str]) -> list[dict[str, Any]]:
        """
        Fetch {id, price, regular_price} for all product ids in one call.

        Raises:
            BackendUnavailable: The catalog could not be reached.
        """
        if not product_ids:
            return []
        try:
            with backend_errors(CATALOG_SERVICE):
                data = await api_get(
                    self._client,
                    "/wc/v3/products",
                    params=self._params(
                        include=",".join(product_ids),
                        per_page=len(product_ids),
                    ),
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(CATALOG_SERVICE, f"HTTP {e.response.status_code}") from e
        return data if isinstance(data, list) else []
