import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from common.core.exceptions import TransientError


class DistributedLockInterface(ABC):
    """Interface for distributed lock providers."""

    async def connect(self) -> bool:
        """Open the backing connection. Providers without one return True."""
        return True

    async def disconnect(self) -> None:
        """Close the backing connection."""
        return None

    async def ping(self) -> bool:
        """Raise if the backing store is unreachable."""
        return True

    @abstractmethod
    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        """
        Acquire a distributed lock for a resource.

        Args:
            resource_key: The resource to lock (e.g., "tenant:42")
            timeout_seconds: Lock expiration time in seconds

        Returns:
            Lock token if acquired, None otherwise
        """
        pass

    @abstractmethod
    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        """
        Release a distributed lock.

        Returns:
            True if released, False if token doesn't match or lock expired
        """
        pass

    async def acquire_lock_with_retry(
        self,
        resource_key: str,
        lock_ttl_seconds: int = 30,
        acquire_timeout_seconds: float = 5.0,
        retry_interval_ms: int = 50,
    ) -> Optional[str]:
        """
        Acquire a lock, retrying until acquire_timeout_seconds runs out.

        Returns:
            Lock token if acquired, None if timeout exceeded
        """
        end_time = time.monotonic() + acquire_timeout_seconds
        while True:
            token = await self.acquire_lock(resource_key, lock_ttl_seconds)
            if token:
                return token
            if time.monotonic() >= end_time:
                return None
            await asyncio.sleep(retry_interval_ms / 1000)

    @asynccontextmanager
    async def hold(
        self,
        resource_key: str,
        lock_ttl_seconds: int = 30,
        acquire_timeout_seconds: float = 5.0,
    ) -> AsyncGenerator[str, None]:
        """
        Hold a lock for the duration of the block.

        Raises:
            TransientError: if the lock could not be acquired in time
        """
        token = await self.acquire_lock_with_retry(
            resource_key,
            lock_ttl_seconds=lock_ttl_seconds,
            acquire_timeout_seconds=acquire_timeout_seconds,
        )
        if not token:
            raise TransientError(f"Could not acquire lock for {resource_key}")
        try:
            yield token
        finally:
            await self.release_lock(resource_key, token)
