from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.models.domain.subscription import Subscription


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_by_company_id(
        self, company_id: int, for_update: bool = False
    ) -> Optional[Subscription]:
        """Get the company's subscription; ``for_update`` row-locks it on PostgreSQL."""
        query = select(SubscriptionEntity).where(
            SubscriptionEntity.company_id == company_id
        )
        if for_update:
            query = query.with_for_update()
        return await self._fetch_one(query)

    @trace_span
    async def list_expiring(
        self, before: datetime, statuses: Iterable[SubscriptionStatus]
    ) -> List[Subscription]:
        """Subscriptions in ``statuses`` whose period ended before ``before``."""
        query = (
            select(SubscriptionEntity)
            .where(
                SubscriptionEntity.status.in_([s.value for s in statuses]),
                SubscriptionEntity.period_end < before,
            )
            .order_by(SubscriptionEntity.period_end)
        )
        return await self._fetch_all(query)

    @trace_span
    async def list_with_pending_changes(
        self, before: datetime, statuses: Iterable[SubscriptionStatus]
    ) -> List[Subscription]:
        """Subscriptions at or past period_end with a deferred plan or seat change."""
        query = (
            select(SubscriptionEntity)
            .where(
                SubscriptionEntity.status.in_([s.value for s in statuses]),
                SubscriptionEntity.period_end <= before,
                or_(
                    SubscriptionEntity.pending_plan_id.is_not(None),
                    SubscriptionEntity.pending_max_seats.is_not(None),
                ),
            )
            .order_by(SubscriptionEntity.period_end)
        )
        return await self._fetch_all(query)

    @trace_span
    async def update_expired_to_status(
        self,
        from_statuses: Iterable[SubscriptionStatus],
        cutoff: datetime,
        to_status: SubscriptionStatus,
    ) -> int:
        """
        Set-based transition of every subscription in ``from_statuses`` whose
        period ended before ``cutoff``. Returns the number of rows moved.

        The status filter doubles as a compare-and-set: a row another writer
        already moved is not touched.
        """
        stmt = update(SubscriptionEntity).where(
            SubscriptionEntity.status.in_([s.value for s in from_statuses]),
            SubscriptionEntity.period_end < cutoff,
        )
        stmt = stmt.values(
            status=to_status.value, updated_at=datetime.utcnow()
        ).execution_options(synchronize_session=False)

        async with self._get_session() as session:
            result = await session.execute(stmt)
            await session.flush()
            return result.rowcount or 0
