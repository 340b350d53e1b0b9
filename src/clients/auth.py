"""Client for the WordPress JWT auth collaborator."""
import logging
from typing import Any

import httpx

from clients.api_client import api_get, api_post, backend_errors, error_message
from services.exceptions import AuthFailure, BackendUnavailable

logger = logging.getLogger(__name__)

SERVICE = "auth"

DEFAULT_LOGIN_ERROR = "Onjuiste e-mailadres of wachtwoord"
MISSING_TOKEN_ERROR = "Authenticatie mislukt - geen token ontvangen"


class AuthClient:
    """Exchanges credentials for bearer tokens and reads the bare account record."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def obtain_token(self, email: str, password: str) -> str:
        """
        Exchange credentials for a bearer token.

        Raises:
            AuthFailure: The credentials were rejected (message is the
                collaborator's own, for display) or no token came back.
            BackendUnavailable: The auth service could not be reached.
        """
        try:
            with backend_errors(SERVICE):
                data = await api_post(
                    self._client,
                    "/jwt-auth/v1/token",
                    json={"username": email, "password": password},
                )
        except httpx.HTTPStatusError as e:
            raise AuthFailure(error_message(e, DEFAULT_LOGIN_ERROR)) from e

        token = None
        if isinstance(data, dict):
            nested = data.get("data")
            if isinstance(nested, dict):
                token = nested.get("token")
            token = token or data.get("token")
        if not token:
            raise AuthFailure(MISSING_TOKEN_ERROR)
        return token

    async def validate_token(self, token: str) -> bool:
        """
        Introspect a bearer token.

        Returns False for rejected tokens and when the auth service is down.
        Session restore does not call this; it trusts the persisted identity.
        """
        try:
            with backend_errors(SERVICE):
                data = await api_get(self._client, "/jwt-auth/v1/token/validate", token=token)
        except httpx.HTTPStatusError:
            return False
        except BackendUnavailable as e:
            logger.warning("token_validation_unavailable error=%s", e)
            return False
        return isinstance(data, dict) and data.get("valid") is True

    async def fetch_current_account(self, token: str) -> dict[str, Any] | None:
        """
        Fetch the bare WordPress account for a token.

        Used when a customer exists in the auth system without a commerce
        profile. Returns None when the account cannot be read.
        """
        try:
            with backend_errors(SERVICE):
                data = await api_get(self._client, "/wp/v2/users/me", token=token)
        except httpx.HTTPStatusError as e:
            logger.info("current_account_not_found status=%s", e.response.status_code)
            return None
        return data if isinstance(data, dict) else None

    async def forgot_password(self, email: str) -> dict[str, Any]:
        """
        Request a password reset mail.

        Returns the endpoint's {success, message}; a rejection comes back as
        success=False with the endpoint's message.
        """
        return await self._password_call(
            "/wasgeurtje/v1/forgotpassword",
            {"email": email},
            "Failed to send password reset email.",
        )

    async def reset_password(self, token: str, password: str) -> dict[str, Any]:
        """Set a new password using a reset token. Same result shape as forgot_password."""
        return await self._password_call(
            "/wasgeurtje/v1/resetpassword",
            {"token": token, "password": password},
            "Failed to reset password.",
        )

    async def _password_call(
        self, path: str, body: dict[str, Any], default_error: str,
    ) -> dict[str, Any]:
        try:
            with backend_errors(SERVICE):
                data = await api_post(self._client, path, json=body)
        except httpx.HTTPStatusError as e:
            return {"success": False, "message": error_message(e, default_error)}
        return data if isinstance(data, dict) else {"success": False}
