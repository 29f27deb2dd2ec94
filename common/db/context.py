"""
Database session context.

Holds the session of the transaction the current task is running in, so
repositories called inside ``transaction()`` share one session and one
commit. Reads issued inside a write transaction join it: a ledger mutation
must see its own uncommitted rows.

Usage:
    async with transaction():
        subscription = await subscription_repo.get_by_company_id(company_id)
        await invoice_repo.mark_paid(invoice_id, ...)
        # both statements commit together
"""

from contextvars import ContextVar
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

# Current write session (inside transaction())
_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)

# Current read session (inside transaction(readonly=True))
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """
    Get the session of the enclosing transaction, if any.

    A readonly lookup falls back to the write session so reads inside a
    write transaction stay on the same connection.
    """
    if readonly:
        return _read_session.get() or _write_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    """Bind session to the current context. Returns a reset token."""
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    """Undo set_current_session using its token."""
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    """True when called from inside transaction()."""
    return get_current_session(readonly=readonly) is not None
