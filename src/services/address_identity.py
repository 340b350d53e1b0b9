"""
Content-derived address identity and the device-local soft-delete registry.

The commerce backend has no durable id for saved addresses that both the
checkout and profile surfaces agree on, so an address is identified by a hash
of its normalized content. Deleting an address only records its identities in
a tombstone set stored beside (not inside) the address list; nothing is
removed on the backend.
"""
import json
import logging
import re
from collections.abc import Iterable
from typing import NamedTuple, Protocol, TypeVar

from core.storage import DELETED_ADDRESSES_KEY, KeyValueStorage

logger = logging.getLogger(__name__)

# "Kerkstraat 12", "Kerkstraat 12a", "Lange Laan 7-B"
_STREET_LINE = re.compile(r"^(.+?)\s+(\d+)([a-zA-Z\-]*)$")


class AddressLike(Protocol):
    """Anything carrying the address fields the identity is derived from."""

    street: str
    house_number: str
    house_addition: str
    postal_code: str


A = TypeVar("A", bound=AddressLike)


class ParsedStreet(NamedTuple):
    street: str
    house_number: str
    house_addition: str


def parse_street_line(line: str) -> ParsedStreet:
    """
    Split a combined "street + house number" backend field.

    The trailing run of digits, optionally followed by letters or hyphens, is
    the house number and addition; everything before it is the street. Lines
    that don't match keep the whole text as street with empty number fields.
    """
    line = (line or "").strip()
    if not line:
        return ParsedStreet("", "", "")
    match = _STREET_LINE.match(line)
    if match is None:
        return ParsedStreet(line, "", "")
    return ParsedStreet(match.group(1).strip(), match.group(2), match.group(3))


def normalize_address(address: AddressLike) -> str:
    """Concatenate street, house number, addition and postal code, no separators."""
    return (
        f"{address.street or ''}{address.house_number or ''}"
        f"{address.house_addition or ''}{address.postal_code or ''}"
    )


def content_hash(text: str) -> str:
    """
    32-bit rolling hash (h = h*31 + code unit), rendered as abs(h) in base 16.

    Iterates UTF-16 code units so the result matches identities derived by the
    storefront's browser surfaces for the same text.
    """
    h = 0
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        h = (h * 31 + int.from_bytes(encoded[i:i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x")


def address_identity(address: AddressLike) -> str:
    """Stable identity for an address, derived only from its content."""
    return content_hash(normalize_address(address))


class SoftDeleteRegistry:
    """
    Append-only set of deleted address identities, persisted per device.

    An address is deleted when either its content identity or its backend id
    is in the set, so it stays hidden even if a later fetch returns it under a
    different id shape. The set is re-read on every call, so registries in
    other processes on the same device see each other's deletions.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    async def identities(self) -> list[str]:
        """Return every tombstoned identity in insertion order."""
        raw = await self._storage.get(DELETED_ADDRESSES_KEY)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("soft_delete_registry_unreadable")
            return []
        if not isinstance(data, list):
            logger.warning("soft_delete_registry_unreadable")
            return []
        return [item for item in data if isinstance(item, str)]

    async def is_deleted(self, address: AddressLike) -> bool:
        """Check whether the address's content identity or backend id is tombstoned."""
        deleted = set(await self.identities())
        return self._matches(deleted, address)

    async def mark_deleted(self, address: AddressLike) -> None:
        """
        Tombstone the address's content identity and, if it has one, its id.

        Idempotent: identities already present are not added twice.
        """
        current = await self.identities()
        candidates = [address_identity(address)]
        address_id = getattr(address, "id", None)
        if address_id:
            candidates.append(address_id)
        added = [c for c in dict.fromkeys(candidates) if c not in current]
        if not added:
            return
        await self._storage.set(DELETED_ADDRESSES_KEY, json.dumps(current + added))
        logger.info("address_soft_deleted identities=%s", ",".join(added))

    async def filter_visible(self, addresses: Iterable[A]) -> list[A]:
        """Drop every address whose identity or id is tombstoned."""
        deleted = set(await self.identities())
        return [a for a in addresses if not self._matches(deleted, a)]

    @staticmethod
    def _matches(deleted: set[str], address: AddressLike) -> bool:
        if address_identity(address) in deleted:
            return True
        address_id = getattr(address, "id", None)
        return bool(address_id) and address_id in deleted
