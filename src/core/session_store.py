"""Durable storage of the logged-in identity and its bearer token."""
import json
import logging
from typing import Any

from pydantic import ValidationError

from core.storage import SESSION_KEY, KeyValueStorage
from schemas.user import SessionRecord, User
from services.exceptions import MalformedPersistedState

logger = logging.getLogger(__name__)


class PersistentSessionStore:
    """
    Persists (identity, credential) as a single record.

    Identity and token share one storage slot, so a reader can never observe an
    identity without its token or the reverse. No network access.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    async def save(self, user: User, token: str) -> bool:
        """Persist the identity together with its token."""
        record = SessionRecord(user=user, token=token)
        saved = await self._storage.set(SESSION_KEY, record.model_dump_json())
        if not saved:
            logger.warning("session_store_save_failed user_id=%s", user.id)
        return saved

    async def load(self) -> SessionRecord | None:
        """
        Load the persisted session.

        A record that is missing, unparseable, or whose identity lacks an id or
        email is treated as "no session". Malformed records are cleared as a
        side effect so later reads do not trip over them again.
        """
        raw = await self._storage.get(SESSION_KEY)
        if raw is None:
            return None
        try:
            return self._parse(raw)
        except MalformedPersistedState as e:
            logger.warning("session_store_malformed_record_cleared reason=%s", e)
            await self.clear()
            return None

    async def clear(self) -> None:
        """Remove the persisted session."""
        await self._storage.delete(SESSION_KEY)

    @staticmethod
    def _parse(raw: str) -> SessionRecord:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedPersistedState(f"not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedPersistedState("record is not an object")
        user = data.get("user")
        if not isinstance(user, dict) or not user.get("id") or not user.get("email"):
            raise MalformedPersistedState("identity missing id or email")
        try:
            return SessionRecord.model_validate(
                {**data, "user": migrate_legacy_identity(user)},
            )
        except ValidationError as e:
            raise MalformedPersistedState(str(e)) from e


def migrate_legacy_identity(user: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a persisted single `address` block into an `addresses` list.

    Identities saved before multi-address support only carry `address`; a block
    with a street becomes the default "Thuis" address. Anything else is
    returned unchanged.
    """
    legacy = user.get("address")
    if user.get("addresses") or not isinstance(legacy, dict) or not legacy.get("street"):
        return user
    return {
        **user,
        "addresses": [
            {
                "id": "1",
                "label": "Thuis",
                "first_name": user.get("first_name") or "",
                "last_name": user.get("last_name") or "",
                "street": legacy.get("street") or "",
                "city": legacy.get("city") or "",
                "postal_code": legacy.get("postal_code") or "",
                "country": legacy.get("country") or "NL",
                "is_default": True,
            },
        ],
    }
