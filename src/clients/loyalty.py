"""Client for the loyalty points endpoints."""
from typing import Any

import httpx

from clients.api_client import api_get, api_post, backend_errors, error_message
from services.exceptions import BackendUnavailable, SyncError

SERVICE = "loyalty"


class LoyaltyClient:
    """Reads point balances and redeems points for a coupon."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_points(self, email: str) -> dict[str, Any]:
        """
        Return the raw balance {points, earned, level_id} for an email.

        Raises:
            BackendUnavailable: The endpoint failed or answered with an error.
        """
        try:
            with backend_errors(SERVICE):
                data = await api_get(
                    self._client,
                    "/my/v1/loyalty/points",
                    params={"email": email},
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(SERVICE, f"HTTP {e.response.status_code}") from e
        return data if isinstance(data, dict) else {}

    async def redeem(self, email: str, points: int) -> dict[str, Any]:
        """
        Redeem points; returns {success, remaining_points, coupon_code, ...}.

        Raises:
            SyncError: The redemption was refused (message from the endpoint).
        """
        try:
            with backend_errors(SERVICE):
                data = await api_post(
                    self._client,
                    "/my/v1/loyalty/redeem",
                    json={"email": email, "points": points},
                )
        except httpx.HTTPStatusError as e:
            raise SyncError(error_message(e, "Failed to redeem points")) from e
        return data if isinstance(data, dict) else {}

    async def get_eligibility(self, email: str) -> dict[str, Any]:
        """Return {eligible, can_redeem_times, current_points} for an email."""
        try:
            with backend_errors(SERVICE):
                data = await api_get(
                    self._client,
                    "/my/v1/loyalty/redeem",
                    params={"email": email},
                )
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(SERVICE, f"HTTP {e.response.status_code}") from e
        return data if isinstance(data, dict) else {}
