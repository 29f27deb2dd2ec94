"""
Request-time subscription checks.

Each check runs in two stages: a cheap predicate over the token's
subscription claims, then the ledger when the claims are missing, stale or
say no. The ledger answer is final. Seat checks skip the first stage and
always use the live employee count.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.exceptions import (
    FeatureNotIncludedError,
    SeatLimitExceededError,
    SubscriptionInactiveError,
)
from packages.billing.models.domain.claims import SubscriptionClaims
from packages.billing.services.subscription_service import SubscriptionService

logger = get_logger(__name__)

ClaimsPredicate = Callable[[SubscriptionClaims, datetime], bool]
LedgerCheck = Callable[[int, datetime], Awaitable[bool]]
AccessCheck = Callable[[SubscriptionClaims, int, datetime], Awaitable[bool]]


def claims_grant_access(claims: SubscriptionClaims, now: datetime) -> bool:
    return (
        claims.is_present()
        and claims.status.has_access()
        and now < claims.expires_at
    )


def claims_include_feature(code: str) -> ClaimsPredicate:
    def predicate(claims: SubscriptionClaims, now: datetime) -> bool:
        return claims_grant_access(claims, now) and code in claims.features

    return predicate


def two_stage(fast: ClaimsPredicate, authoritative: LedgerCheck) -> AccessCheck:
    """Compose a claims predicate with the ledger check it falls back to."""

    async def check(claims: SubscriptionClaims, company_id: int, now: datetime) -> bool:
        if fast(claims, now):
            return True
        return await authoritative(company_id, now)

    return check


class AccessGuard:
    """Authorization checks backed by the subscription ledger."""

    def __init__(self, subscription_service: Optional[SubscriptionService] = None):
        self.subscription_service = subscription_service or SubscriptionService()

    async def _ledger_grants_access(self, company_id: int, now: datetime) -> bool:
        subscription = await self.subscription_service.get_by_company_id(company_id)
        return subscription is not None and subscription.has_access(now)

    @trace_span
    async def require_active_subscription(
        self,
        company_id: int,
        claims: SubscriptionClaims,
        now: Optional[datetime] = None,
    ) -> None:
        check = two_stage(claims_grant_access, self._ledger_grants_access)
        if not await check(claims, company_id, now or datetime.utcnow()):
            logger.info(
                f"Company {company_id} denied: no active subscription",
                extra={"company_id": company_id},
            )
            raise SubscriptionInactiveError()

    @trace_span
    async def require_feature(
        self,
        company_id: int,
        claims: SubscriptionClaims,
        code: str,
        now: Optional[datetime] = None,
    ) -> None:
        async def ledger_has_feature(company_id: int, now: datetime) -> bool:
            return await self.subscription_service.has_feature(company_id, code, now)

        check = two_stage(claims_include_feature(code), ledger_has_feature)
        if not await check(claims, company_id, now or datetime.utcnow()):
            logger.info(
                f"Company {company_id} denied feature {code}",
                extra={"company_id": company_id, "feature_code": code},
            )
            raise FeatureNotIncludedError(f"Feature {code} is not included in your plan")

    @trace_span
    async def require_can_add_employee(
        self, company_id: int, now: Optional[datetime] = None
    ) -> None:
        if not await self.subscription_service.can_add_employee(company_id, now):
            raise SeatLimitExceededError(
                "All seats are in use; add seats before adding employees"
            )
