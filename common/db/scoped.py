"""
Operation-scoped database sessions.

Repositories never hold a session of their own: each call either joins the
enclosing ``transaction()`` or acquires a short-lived session that commits and
releases immediately. This keeps connections free while services talk to the
payment provider or wait on a tenant lock.

Usage:
    # Single operation - acquires and releases immediately
    async with get_session() as session:
        plan = await session.get(PlanEntity, plan_id)

    # Several operations that must commit together
    async with transaction():
        await invoice_repo.mark_paid(...)
        await subscription_repo.update(...)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session. Commits on success (unless
    readonly), rolls back and re-raises on exception. Nesting joins the
    outer transaction instead of opening a second one.
    """
    existing = get_current_session(readonly=readonly)
    if existing:
        yield existing
        return

    session_factory = AsyncSessionLocalReadonly if readonly else AsyncSessionLocal

    start = time.perf_counter()
    async with session_factory() as session:
        logger.debug(
            f"Transaction session acquire: {(time.perf_counter() - start) * 1000:.2f}ms, readonly={readonly}"
        )

        token = set_current_session(session, readonly=readonly)
        try:
            yield session
            if not readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session of an enclosing transaction() (which then owns the
    commit); otherwise acquires a new session, commits and releases it.
    """
    existing = get_current_session(readonly=readonly)

    if existing:
        yield existing
        return

    session_factory = AsyncSessionLocalReadonly if readonly else AsyncSessionLocal
    async with session_factory() as session:
        try:
            yield session
            if not readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Operation rollback due to: {e}")
            await session.rollback()
            raise
