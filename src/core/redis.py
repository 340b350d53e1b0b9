"""Redis-backed session storage with connection pooling and graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Namespace for every slot written by the sync core (e.g. "storefront:v1:storefront-session")
#
# Bump this version when the persisted session blob changes shape in a way the
# restore path cannot read. Old keys are then never found, which restore treats
# as "no session" - the user simply logs in again.
STORAGE_SCHEMA_VERSION = 1


class RedisStorage:
    """
    KeyValueStorage backed by Redis.

    Unlike FileStorage this survives a process being moved between hosts, at the
    cost of a network hop. When Redis is disabled or unreachable every read
    returns None and every write returns False, so the session core behaves as
    if nothing was persisted.
    """

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 5) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    def _key(self, key: str) -> str:
        return f"storefront:v{STORAGE_SCHEMA_VERSION}:{key}"

    async def connect(self) -> None:
        """Initialize the connection pool and verify connectivity."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None
            self._pool = None

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    async def get(self, key: str) -> str | None:
        """Get value, returns None if Redis unavailable."""
        if not self._client:
            return None
        try:
            data = await self._client.get(self._key(key))
        except RedisError as e:
            logger.warning("Redis GET failed: %s", e)
            return None
        if data is None:
            return None
        return data.decode("utf-8") if isinstance(data, bytes) else data

    async def set(self, key: str, value: str) -> bool:
        """Set value without expiry, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.set(self._key(key), value)
            return True
        except RedisError as e:
            logger.warning("Redis SET failed: %s", e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.delete(self._key(key))
            return True
        except RedisError as e:
            logger.warning("Redis DELETE failed: %s", e)
            return False
