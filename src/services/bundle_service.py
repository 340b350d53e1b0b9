"""Personalised bundle offers and the device-local popup state that shows them."""
import json
import logging

from pydantic import ValidationError

from clients.intelligence import IntelligenceClient
from core.fetch_cache import DEFAULT_TTL_SECONDS, FetchCache
from core.storage import BUNDLE_POPUP_STATUS_KEY, KeyValueStorage
from schemas.bundle import BundleOffer, BundlePopupStatus, BundleStatus
from services.exceptions import SyncError

logger = logging.getLogger(__name__)


class BundleOfferService:
    """
    Looks up the customer's bundle offer and records what they did with it.

    Offers are cached per email like orders and loyalty. Recording a status
    invalidates the cached offer, since the intelligence service may answer
    with a different one afterwards.
    """

    def __init__(
        self,
        intelligence: IntelligenceClient,
        storage: KeyValueStorage,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        cache: FetchCache[BundleOffer | None] | None = None,
    ) -> None:
        self._intelligence = intelligence
        self._storage = storage
        self._cache = cache or FetchCache("bundle", ttl_seconds)

    async def get_offer(self, email: str) -> BundleOffer | None:
        """Return the current offer for email, or None when there is none or the lookup fails."""
        if not email:
            return None
        try:
            return await self._cache.get(f"bundle:{email}", lambda: self._load_offer(email))
        except SyncError as e:
            logger.warning("bundle_fetch_failed email=%s error=%s", email, e)
            return None

    async def _load_offer(self, email: str) -> BundleOffer | None:
        data = await self._intelligence.get_bundle(email)
        if not data.get("success") or data.get("offer_id") is None:
            return None
        payload = {k: v for k, v in data.items() if k != "success"}
        try:
            return BundleOffer.model_validate(payload)
        except ValidationError as e:
            logger.warning("bundle_offer_invalid email=%s error=%s", email, e)
            return None

    async def record_status(self, email: str, offer_id: str | int, status: BundleStatus) -> bool:
        """
        Report that the customer viewed, added or rejected an offer.

        Returns False when the intelligence service could not be reached.
        """
        try:
            await self._intelligence.post_bundle_status(email, offer_id, status)
        except SyncError as e:
            logger.warning(
                "bundle_status_failed email=%s offer_id=%s status=%s error=%s",
                email, offer_id, status, e,
            )
            return False
        self._cache.invalidate(f"bundle:{email}")
        logger.info("bundle_status_recorded offer_id=%s status=%s", offer_id, status)
        return True

    async def save_popup_status(self, status: BundlePopupStatus) -> bool:
        """Persist whether the popup is visible and whether it is minimized."""
        return await self._storage.set(BUNDLE_POPUP_STATUS_KEY, status.model_dump_json())

    async def load_popup_status(self) -> BundlePopupStatus:
        """Read the persisted popup status; unreadable state means hidden."""
        raw = await self._storage.get(BUNDLE_POPUP_STATUS_KEY)
        if raw is None:
            return BundlePopupStatus()
        try:
            return BundlePopupStatus.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("bundle_popup_status_unreadable")
            return BundlePopupStatus()
