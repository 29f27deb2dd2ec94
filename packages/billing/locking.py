"""
Per-tenant serialization for ledger writes.

Owner actions, webhook callbacks and the sweep all take the same lock
before touching a company's subscription or invoices.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from common.core.config import settings
from common.providers.locking.factory import get_lock_provider


def tenant_lock_key(company_id: int) -> str:
    return f"billing:tenant:{company_id}"


@asynccontextmanager
async def tenant_lock(company_id: int) -> AsyncGenerator[str, None]:
    """Hold the company's billing lock; raises TransientError if it stays busy."""
    async with get_lock_provider().hold(
        tenant_lock_key(company_id),
        lock_ttl_seconds=settings.tenant_lock_ttl_seconds,
        acquire_timeout_seconds=settings.tenant_lock_acquire_timeout_seconds,
    ) as token:
        yield token
