import uuid
from typing import Optional
import redis.asyncio as redis

from common.core.config import settings
from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

# Delete only if the caller still owns the lock
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLock(DistributedLockInterface):
    """Redis-based distributed lock (SET NX EX + owner-checked delete)."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None
        self._lock_prefix = "hris:lock:"
        self._connected = False

    async def connect(self) -> bool:
        """Connect to Redis."""
        try:
            self._client = redis.Redis.from_url(
                settings.redis_connection_url, decode_responses=True
            )
            await self._client.ping()
            self._connected = True
            logger.info("Redis lock provider connected")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._connected = False
            logger.info("Redis lock provider disconnected")

    async def ping(self) -> bool:
        await self._ensure_connected()
        return await self._client.ping()

    async def _ensure_connected(self) -> None:
        if not self._connected:
            await self.connect()

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        await self._ensure_connected()

        lock_key = f"{self._lock_prefix}{resource_key}"
        lock_token = str(uuid.uuid4())

        try:
            acquired = await self._client.set(
                lock_key, lock_token, nx=True, ex=timeout_seconds
            )
        except Exception as e:
            logger.error(f"Error acquiring lock for {resource_key}: {e}")
            return None

        if acquired:
            logger.debug(f"Acquired lock for {resource_key}")
            return lock_token
        logger.debug(f"Lock for {resource_key} is held elsewhere")
        return None

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        await self._ensure_connected()

        lock_key = f"{self._lock_prefix}{resource_key}"
        try:
            result = await self._client.eval(RELEASE_SCRIPT, 1, lock_key, lock_token)
        except Exception as e:
            logger.error(f"Error releasing lock for {resource_key}: {e}")
            return False

        if not result:
            logger.warning(
                f"Cannot release lock for {resource_key} - token mismatch or lock expired"
            )
            return False
        return True
