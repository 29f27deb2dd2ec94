"""Read-only view of plans and features."""

from typing import List, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.exceptions import FeatureNotFoundError, PlanNotFoundError
from packages.billing.models.domain.catalog import Feature, Plan
from packages.billing.repositories.plan_repository import (
    FeatureRepository,
    PlanRepository,
)

logger = get_logger(__name__)


class CatalogService:
    """Resolves plans, their ordered features and feature availability."""

    def __init__(
        self,
        plan_repo: Optional[PlanRepository] = None,
        feature_repo: Optional[FeatureRepository] = None,
    ):
        self.plan_repo = plan_repo or PlanRepository()
        self.feature_repo = feature_repo or FeatureRepository()

    @trace_span
    async def list_active_plans(self) -> List[Plan]:
        """Plans open for new checkouts, lowest tier first."""
        return await self.plan_repo.list_active()

    @trace_span
    async def get_plan(self, plan_id: str) -> Plan:
        """Get a plan by id, active or not (existing subscribers may hold retired plans)."""
        plan = await self.plan_repo.get(plan_id)
        if not plan:
            raise PlanNotFoundError(f"Plan {plan_id} not found")
        return plan

    @trace_span
    async def list_features(self) -> List[Feature]:
        return await self.feature_repo.list_all()

    @trace_span
    async def get_features_by_plan(self, plan_id: str) -> List[Feature]:
        # Resolve the plan first so an unknown id is a NotFound, not an empty list
        await self.get_plan(plan_id)
        return await self.feature_repo.list_by_plan(plan_id)

    @trace_span
    async def has_feature(self, plan_id: str, code: str) -> bool:
        """
        Whether ``plan_id`` includes feature ``code``.

        Raises:
            PlanNotFoundError: unknown plan
            FeatureNotFoundError: unknown feature code
        """
        plan = await self.get_plan(plan_id)
        if plan.has_feature(code):
            return True
        if not await self.feature_repo.get_by_code(code):
            raise FeatureNotFoundError(f"Feature {code} not found")
        return False
