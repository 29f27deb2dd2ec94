from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.billing.models.database.catalog import (
    FeatureEntity,
    PlanEntity,
    plan_features,
)
from packages.billing.models.domain.catalog import Feature, Plan


class PlanRepository(BaseRepository[PlanEntity, Plan]):
    """Plans with their features eagerly loaded in display order."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(PlanEntity, Plan, db_session)

    @trace_span
    async def list_active(self) -> List[Plan]:
        query = (
            select(PlanEntity)
            .where(PlanEntity.active.is_(True))
            .order_by(PlanEntity.tier_level, PlanEntity.price)
        )
        return await self._fetch_all(query)


class FeatureRepository(BaseRepository[FeatureEntity, Feature]):
    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(FeatureEntity, Feature, db_session)

    @trace_span
    async def list_all(self) -> List[Feature]:
        return await self._fetch_all(select(FeatureEntity).order_by(FeatureEntity.code))

    @trace_span
    async def get_by_code(self, code: str) -> Optional[Feature]:
        return await self._fetch_one(
            select(FeatureEntity).where(FeatureEntity.code == code)
        )

    @trace_span
    async def list_by_plan(self, plan_id: str) -> List[Feature]:
        query = (
            select(FeatureEntity)
            .join(plan_features, plan_features.c.feature_code == FeatureEntity.code)
            .where(plan_features.c.plan_id == plan_id)
            .order_by(plan_features.c.position)
        )
        return await self._fetch_all(query)
