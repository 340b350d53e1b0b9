"""Client for the customer intelligence bundle-offer endpoints."""
from typing import Any

import httpx

from clients.api_client import api_get, api_post, backend_errors
from services.exceptions import BackendUnavailable

SERVICE = "intelligence"


class IntelligenceClient:
    """Looks up personalised bundle offers and records what the customer did with them."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_bundle(self, email: str) -> dict[str, Any]:
        """Return the raw bundle response {success, offer_id, bundle, ...}."""
        try:
            with backend_errors(SERVICE):
                data = await api_get(
                    self._client,
                    "/wg/v1/intelligence/bundle",
                    params={"customer_email": email},
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(SERVICE, f"HTTP {e.response.status_code}") from e
        return data if isinstance(data, dict) else {}

    async def post_bundle_status(self, email: str, offer_id: str | int, status: str) -> None:
        """Record a bundle status change (viewed, added_to_cart, rejected)."""
        try:
            with backend_errors(SERVICE):
                await api_post(
                    self._client,
                    "/wg/v1/intelligence/bundle-status",
                    json={
                        "offer_id": offer_id,
                        "status": status,
                        "customer_email": email,
                    },
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(SERVICE, f"HTTP {e.response.status_code}") from e
