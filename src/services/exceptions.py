"""Shared exceptions for the customer sync core."""


class SyncError(Exception):
    """Base exception for failures raised by the sync core and its clients."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class AuthFailure(SyncError):
    """
    Raised when credentials are rejected or a registration is refused.

    The message comes from the auth collaborator where it supplied one and is
    meant to be shown to the user verbatim.
    """


class BackendUnavailable(SyncError):
    """
    Raised when a collaborator cannot be reached or answers with a server error.

    Background flows log this and leave the affected resource absent.
    """

    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        self.detail = detail
        super().__init__(f"{service} unavailable: {detail}")


class MalformedPersistedState(SyncError):
    """Raised when the persisted session cannot be read as a valid identity."""


class PricingUnavailable(SyncError):
    """Raised when current catalog prices cannot be fetched for a reorder."""
