"""Wiring of storage, collaborator clients and services from Settings."""
import logging
from dataclasses import dataclass

import httpx

from clients.api_client import create_http_client
from clients.auth import AuthClient
from clients.commerce import CatalogClient, CommerceClient
from clients.intelligence import IntelligenceClient
from clients.loyalty import LoyaltyClient
from core.config import Settings, get_settings
from core.redis import RedisStorage
from core.session_store import PersistentSessionStore
from core.storage import FileStorage, KeyValueStorage
from services.address_identity import SoftDeleteRegistry
from services.bundle_service import BundleOfferService
from services.reorder_service import ReorderPriceResolver
from services.session_service import SessionService

logger = logging.getLogger(__name__)


async def create_storage(settings: Settings) -> KeyValueStorage:
    """Create (and for Redis, connect) the configured device-local storage."""
    if settings.storage_backend == "redis":
        storage = RedisStorage(settings.redis_url, enabled=settings.redis_enabled)
        await storage.connect()
        return storage
    return FileStorage(settings.storage_dir)


@dataclass
class StorefrontServices:
    """Everything a storefront process needs, sharing one HTTP client and one store."""

    http_client: httpx.AsyncClient
    storage: KeyValueStorage
    session: SessionService
    reorder: ReorderPriceResolver
    bundles: BundleOfferService

    async def close(self) -> None:
        """Let background hydration finish, then release connections."""
        try:
            await self.session.wait_background_tasks()
        finally:
            await self.http_client.aclose()
            if isinstance(self.storage, RedisStorage):
                await self.storage.close()


async def build_services(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    storage: KeyValueStorage | None = None,
) -> StorefrontServices:
    """
    Build the services for one process.

    Args:
        settings: Defaults to get_settings().
        http_client: Injected in tests; otherwise created from settings.
        storage: Injected in tests; otherwise created from settings.
    """
    settings = settings or get_settings()
    http_client = http_client or create_http_client(settings)
    storage = storage or await create_storage(settings)

    session = SessionService(
        store=PersistentSessionStore(storage),
        auth=AuthClient(http_client),
        commerce=CommerceClient(http_client, settings),
        loyalty=LoyaltyClient(http_client),
        registry=SoftDeleteRegistry(storage),
        settings=settings,
    )
    logger.info(
        "storefront_services_built backend=%s api=%s",
        settings.storage_backend, settings.wp_json_url,
    )
    return StorefrontServices(
        http_client=http_client,
        storage=storage,
        session=session,
        reorder=ReorderPriceResolver(CatalogClient(http_client, settings)),
        bundles=BundleOfferService(
            IntelligenceClient(http_client),
            storage,
            ttl_seconds=settings.cache_ttl_seconds,
        ),
    )
