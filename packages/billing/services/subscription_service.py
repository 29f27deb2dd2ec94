"""
Subscription ledger.

Single source of truth for a company's status, plan, seats and deferred
changes. Every mutation runs under the company's billing lock; upgrades and
seat increases only create an invoice here and take effect once the payment
callback calls ``apply_paid_invoice``.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import (
    DuplicatePendingInvoiceError,
    InvalidSubscriptionStateError,
    NoPendingDowngradeError,
    NotADowngradeError,
    NotAnUpgradeError,
    PlanNotAvailableError,
    SameSeatCountError,
    SeatLimitExceededError,
    SeatsBelowActiveEmployeesError,
    SubscriptionAlreadyExistsError,
    SubscriptionNotFoundError,
)
from packages.billing.locking import tenant_lock
from packages.billing.models.domain.catalog import Feature, Plan
from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    PendingChangeOutcome,
    SubscriptionStatus,
)
from packages.billing.models.domain.invoice import (
    Invoice,
    InvoiceCreateModel,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.schemas.billing import (
    ChangeSeatsResponse,
    InvoiceResponse,
    SubscriptionResponse,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.catalog_service import CatalogService
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.pricing import (
    describe_purchase,
    full_amount,
    period_end_for,
    prorated_amount,
)
from packages.companies.repositories.company_repository import CompanyRepository
from packages.employees.repositories.employee_repository import EmployeeRepository

logger = get_logger(__name__)

# Statuses the deferred-change commit applies to
PENDING_COMMIT_STATUSES = (
    SubscriptionStatus.TRIAL,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
)

# Statuses whose paid period a same-plan checkout extends instead of replacing
RENEWABLE_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.CANCELLED,
)


class SubscriptionService:
    """Service for the per-company subscription state machine."""

    def __init__(
        self,
        catalog: Optional[CatalogService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        invoice_service: Optional[InvoiceService] = None,
        employee_repo: Optional[EmployeeRepository] = None,
        company_repo: Optional[CompanyRepository] = None,
    ):
        self.catalog = catalog or CatalogService()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.invoice_service = invoice_service or InvoiceService()
        self.employee_repo = employee_repo or EmployeeRepository()
        self.company_repo = company_repo or CompanyRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @trace_span
    async def get_by_company_id(self, company_id: int) -> Optional[Subscription]:
        return await self.subscription_repo.get_by_company_id(company_id)

    @trace_span
    async def get_subscription(
        self, company_id: int, for_update: bool = False
    ) -> Subscription:
        subscription = await self.subscription_repo.get_by_company_id(
            company_id, for_update=for_update
        )
        if not subscription:
            raise SubscriptionNotFoundError(
                f"No subscription for company {company_id}"
            )
        return subscription

    @trace_span
    async def get_my_subscription(
        self, company_id: int, now: Optional[datetime] = None
    ) -> SubscriptionResponse:
        """Subscription with its plan and live seat usage."""
        subscription = await self.get_subscription(company_id)
        plan = await self.catalog.get_plan(subscription.plan_id)
        used_seats = await self.employee_repo.count_active_by_company_id(company_id)
        return SubscriptionResponse.build(subscription, plan, used_seats, now)

    @trace_span
    async def has_feature(
        self, company_id: int, code: str, now: Optional[datetime] = None
    ) -> bool:
        """Whether the company currently has access to feature ``code``."""
        subscription = await self.subscription_repo.get_by_company_id(company_id)
        if not subscription or not subscription.has_access(now):
            return False
        return await self.catalog.has_feature(subscription.plan_id, code)

    @trace_span
    async def get_subscription_features(self, company_id: int) -> List[Feature]:
        subscription = await self.get_subscription(company_id)
        return await self.catalog.get_features_by_plan(subscription.plan_id)

    @trace_span
    async def can_add_employee(
        self, company_id: int, now: Optional[datetime] = None
    ) -> bool:
        """True while the live active-employee count is below ``max_seats``."""
        subscription = await self.subscription_repo.get_by_company_id(company_id)
        if not subscription or not subscription.has_access(now):
            return False
        active = await self.employee_repo.count_active_by_company_id(company_id)
        return active < subscription.max_seats

    # ------------------------------------------------------------------
    # Owner actions
    # ------------------------------------------------------------------

    @trace_span
    async def start_trial(
        self, company_id: int, now: Optional[datetime] = None
    ) -> Subscription:
        """Create the company's one subscription on the free trial plan."""
        now = now or datetime.utcnow()
        plan = await self.catalog.get_plan(settings.trial_plan_id)
        trial_end = now + timedelta(days=settings.trial_duration_days)

        async with tenant_lock(company_id):
            async with transaction():
                if await self.subscription_repo.get_by_company_id(company_id):
                    raise SubscriptionAlreadyExistsError()

                subscription = await self.subscription_repo.create(
                    SubscriptionCreateModel(
                        company_id=company_id,
                        plan_id=plan.id,
                        status=SubscriptionStatus.TRIAL,
                        max_seats=plan.max_seats_included
                        or settings.trial_default_seats,
                        period_start=now,
                        period_end=trial_end,
                        trial_ends_at=trial_end,
                    )
                )

        logger.info(
            f"Started trial for company {company_id} until {trial_end.isoformat()}",
            extra={"company_id": company_id, "subscription_id": subscription.id},
        )
        return subscription

    @trace_span
    async def checkout(
        self,
        company_id: int,
        plan_id: str,
        seat_count: int,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        payer_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Open an invoice for a full period of ``plan_id``.

        Works with no subscription (first purchase), from a trial, and for
        renewing or reactivating the current plan. A paid, same-plan renewal
        starts where the current period ends. Switching plans on a paying
        subscription goes through upgrade or downgrade instead.
        """
        now = now or datetime.utcnow()
        plan = await self._get_purchasable_plan(plan_id)
        await self._check_seats_for_plan(company_id, plan, seat_count)

        async with tenant_lock(company_id):
            subscription = await self.subscription_repo.get_by_company_id(company_id)

            period_start = now
            if subscription:
                paying = subscription.status in (
                    SubscriptionStatus.ACTIVE,
                    SubscriptionStatus.PAST_DUE,
                )
                if paying and subscription.plan_id != plan.id:
                    raise InvalidSubscriptionStateError(
                        "Use upgrade or downgrade to change the plan of a paid subscription"
                    )
                if (
                    subscription.status in RENEWABLE_STATUSES
                    and subscription.plan_id == plan.id
                ):
                    period_start = max(now, subscription.period_end)

            period_end = period_end_for(period_start, billing_cycle)
            invoice = await self.invoice_service.create_invoice_for_action(
                InvoiceCreateModel(
                    company_id=company_id,
                    subscription_id=subscription.id if subscription else None,
                    purpose=InvoicePurpose.CHECKOUT,
                    amount=full_amount(plan.price, seat_count, billing_cycle),
                    description=describe_purchase(plan.name, seat_count, billing_cycle),
                    plan_id=plan.id,
                    plan_name=plan.name,
                    price_per_seat=plan.price,
                    seat_count=seat_count,
                    billing_cycle=billing_cycle,
                    period_start=period_start,
                    period_end=period_end,
                ),
                payer_email=await self._payer_email(company_id, payer_email),
            )
        return invoice

    @trace_span
    async def upgrade_plan(
        self,
        company_id: int,
        plan_id: str,
        seat_count: Optional[int] = None,
        payer_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Open an invoice for a higher plan. Takes effect when paid, with a
        fresh period starting from the invoice.
        """
        now = now or datetime.utcnow()
        target = await self._get_purchasable_plan(plan_id)

        async with tenant_lock(company_id):
            subscription = await self.get_subscription(company_id)
            if not subscription.status.can_upgrade():
                raise InvalidSubscriptionStateError(
                    f"Cannot upgrade a {subscription.status.value} subscription"
                )

            current = await self.catalog.get_plan(subscription.plan_id)
            if not target.ranks_above(current):
                raise NotAnUpgradeError(
                    f"Plan {target.id} is not above current plan {current.id}"
                )

            seats = seat_count or subscription.max_seats
            await self._check_seats_for_plan(company_id, target, seats)

            cycle = subscription.billing_cycle
            invoice = await self.invoice_service.create_invoice_for_action(
                InvoiceCreateModel(
                    company_id=company_id,
                    subscription_id=subscription.id,
                    purpose=InvoicePurpose.UPGRADE,
                    amount=full_amount(target.price, seats, cycle),
                    description=describe_purchase(target.name, seats, cycle),
                    plan_id=target.id,
                    plan_name=target.name,
                    price_per_seat=target.price,
                    seat_count=seats,
                    billing_cycle=cycle,
                    period_start=now,
                    period_end=period_end_for(now, cycle),
                ),
                payer_email=await self._payer_email(company_id, payer_email),
            )

        logger.info(
            f"Upgrade invoice {invoice.id} opened: {current.id} -> {target.id}",
            extra={"company_id": company_id, "subscription_id": subscription.id},
        )
        return invoice

    @trace_span
    async def downgrade_plan(self, company_id: int, plan_id: str) -> Subscription:
        """Schedule a move to a lower plan at the end of the current period."""
        target = await self._get_purchasable_plan(plan_id)

        async with tenant_lock(company_id):
            async with transaction():
                subscription = await self.get_subscription(company_id, for_update=True)
                self._require_status(subscription, SubscriptionStatus.ACTIVE)

                current = await self.catalog.get_plan(subscription.plan_id)
                if not current.ranks_above(target):
                    raise NotADowngradeError(
                        f"Plan {target.id} is not below current plan {current.id}"
                    )

                if await self.invoice_service.has_pending_invoice(company_id):
                    raise DuplicatePendingInvoiceError()

                active = await self.employee_repo.count_active_by_company_id(company_id)
                if not target.allows_seats(active):
                    raise SeatLimitExceededError(
                        f"Plan {target.name} allows {target.max_seats_included} seats, "
                        f"company has {active} active employees"
                    )

                updated = await self.subscription_repo.update(
                    subscription.id, SubscriptionUpdateModel(pending_plan_id=target.id)
                )

        logger.info(
            f"Scheduled downgrade {current.id} -> {target.id} at {subscription.period_end.isoformat()}",
            extra={"company_id": company_id, "subscription_id": subscription.id},
        )
        return updated

    @trace_span
    async def cancel_downgrade(self, company_id: int) -> Subscription:
        async with tenant_lock(company_id):
            async with transaction():
                subscription = await self.get_subscription(company_id, for_update=True)
                self._require_status(subscription, SubscriptionStatus.ACTIVE)
                if subscription.pending_plan_id is None:
                    raise NoPendingDowngradeError()

                updated = await self.subscription_repo.update(
                    subscription.id, SubscriptionUpdateModel(pending_plan_id=None)
                )

        logger.info(
            f"Cancelled scheduled downgrade to {subscription.pending_plan_id}",
            extra={"company_id": company_id, "subscription_id": subscription.id},
        )
        return updated

    @trace_span
    async def change_seats(
        self,
        company_id: int,
        seat_count: int,
        payer_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ChangeSeatsResponse:
        """
        Increase seats now (prorated invoice) or schedule a decrease for the
        next period. Asking for the current seat count drops a scheduled
        decrease.
        """
        now = now or datetime.utcnow()

        async with tenant_lock(company_id):
            subscription = await self.get_subscription(company_id)
            self._require_status(subscription, SubscriptionStatus.ACTIVE)
            plan = await self.catalog.get_plan(subscription.plan_id)

            if not plan.allows_seats(seat_count):
                raise SeatLimitExceededError(
                    f"Plan {plan.name} allows at most {plan.max_seats_included} seats"
                )

            if seat_count == subscription.max_seats:
                if subscription.pending_max_seats is None:
                    raise SameSeatCountError()
                async with transaction():
                    await self.subscription_repo.update(
                        subscription.id, SubscriptionUpdateModel(pending_max_seats=None)
                    )
                return ChangeSeatsResponse(
                    is_pending=False,
                    message="Scheduled seat decrease cancelled",
                )

            if seat_count < subscription.max_seats:
                active = await self.employee_repo.count_active_by_company_id(company_id)
                if seat_count < active:
                    raise SeatsBelowActiveEmployeesError(
                        f"{active} active employees need at least {active} seats"
                    )
                async with transaction():
                    await self.subscription_repo.update(
                        subscription.id,
                        SubscriptionUpdateModel(pending_max_seats=seat_count),
                    )
                logger.info(
                    f"Scheduled seat decrease {subscription.max_seats} -> {seat_count}",
                    extra={"company_id": company_id, "subscription_id": subscription.id},
                )
                return ChangeSeatsResponse(
                    is_pending=True,
                    message=f"Seats will change to {seat_count} on {subscription.period_end.date().isoformat()}",
                    pending_max_seats=seat_count,
                )

            added = seat_count - subscription.max_seats
            cycle = subscription.billing_cycle
            amount = prorated_amount(plan.price, added, subscription.period_end, now, cycle)
            if amount <= 0:
                raise InvalidSubscriptionStateError(
                    "Current period has ended; renew before adding seats"
                )

            invoice = await self.invoice_service.create_invoice_for_action(
                InvoiceCreateModel(
                    company_id=company_id,
                    subscription_id=subscription.id,
                    purpose=InvoicePurpose.SEAT_CHANGE,
                    amount=amount,
                    description=f"HRIS {plan.name} Plan - {added} additional seats (prorated)",
                    plan_id=plan.id,
                    plan_name=plan.name,
                    price_per_seat=plan.price,
                    seat_count=seat_count,
                    billing_cycle=cycle,
                    period_start=now,
                    period_end=subscription.period_end,
                ),
                payer_email=await self._payer_email(company_id, payer_email),
            )

        return ChangeSeatsResponse(
            is_pending=False,
            message=f"Pay the invoice to add {added} seats",
            invoice=InvoiceResponse.from_domain(invoice),
        )

    @trace_span
    async def cancel_subscription(
        self,
        company_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Cancel at period end. Access continues until ``period_end``; scheduled
        changes and open invoices are dropped.
        """
        now = now or datetime.utcnow()

        async with tenant_lock(company_id):
            async with transaction():
                subscription = await self.get_subscription(company_id, for_update=True)
                if not subscription.status.can_cancel():
                    raise InvalidSubscriptionStateError(
                        f"Cannot cancel a {subscription.status.value} subscription"
                    )

                open_invoices = await self.invoice_service.list_pending_invoices(company_id)
                for invoice in open_invoices:
                    await self.invoice_service.mark_cancelled(invoice.id)

                updated = await self.subscription_repo.update(
                    subscription.id,
                    SubscriptionUpdateModel(
                        status=SubscriptionStatus.CANCELLED,
                        cancelled_at=now,
                        cancellation_reason=reason,
                        pending_plan_id=None,
                        pending_max_seats=None,
                    ),
                )

        for invoice in open_invoices:
            await self.invoice_service.expire_at_provider(invoice)

        logger.info(
            f"Cancelled subscription {subscription.id}, access until {subscription.period_end.isoformat()}",
            extra={
                "company_id": company_id,
                "subscription_id": subscription.id,
                "old_status": subscription.status.value,
                "cancelled_invoices": len(open_invoices),
            },
        )
        return updated

    # ------------------------------------------------------------------
    # Effects applied by the webhook reconciler and the sweep
    # ------------------------------------------------------------------

    @trace_span
    async def apply_paid_invoice(
        self, invoice: Invoice, now: Optional[datetime] = None
    ) -> Subscription:
        """
        Apply what a paid invoice bought.

        Runs inside the caller's transaction and tenant lock, right after the
        invoice itself moved to paid.
        """
        now = now or datetime.utcnow()
        subscription = await self.subscription_repo.get_by_company_id(
            invoice.company_id, for_update=True
        )

        if invoice.purpose == InvoicePurpose.SEAT_CHANGE:
            if not subscription:
                raise SubscriptionNotFoundError(
                    f"No subscription for company {invoice.company_id}"
                )
            seats = invoice.seat_count
            if (
                subscription.plan_id != invoice.plan_id
                or subscription.period_end != invoice.period_end
            ):
                # Plan or period moved on since the invoice was opened
                plan = await self.catalog.get_plan(subscription.plan_id)
                if plan.max_seats_included is not None:
                    seats = min(seats, plan.max_seats_included)
                seats = max(seats, subscription.max_seats)
                logger.warning(
                    f"Seat invoice {invoice.id} was opened for {invoice.plan_id} until "
                    f"{invoice.period_end.isoformat()}; applying {seats} seats on {plan.id}",
                    extra={
                        "event": "outdated_seat_invoice",
                        "company_id": invoice.company_id,
                        "invoice_id": invoice.id,
                        "subscription_id": subscription.id,
                        "invoice_seat_count": invoice.seat_count,
                    },
                )
            updated = await self.subscription_repo.update(
                subscription.id,
                SubscriptionUpdateModel(max_seats=seats, pending_max_seats=None),
            )
            logger.info(
                f"Applied seat change {subscription.max_seats} -> {seats}",
                extra={"company_id": invoice.company_id, "invoice_id": invoice.id},
            )
            return updated

        if invoice.purpose == InvoicePurpose.UPGRADE and not subscription:
            raise SubscriptionNotFoundError(
                f"No subscription for company {invoice.company_id}"
            )

        if not subscription:
            updated = await self.subscription_repo.create(
                SubscriptionCreateModel(
                    company_id=invoice.company_id,
                    plan_id=invoice.plan_id,
                    status=SubscriptionStatus.ACTIVE,
                    billing_cycle=invoice.billing_cycle,
                    max_seats=invoice.seat_count,
                    period_start=invoice.period_start,
                    period_end=invoice.period_end,
                )
            )
        else:
            update_model = SubscriptionUpdateModel(
                plan_id=invoice.plan_id,
                status=SubscriptionStatus.ACTIVE,
                billing_cycle=invoice.billing_cycle,
                max_seats=invoice.seat_count,
                period_end=invoice.period_end,
                pending_plan_id=None,
                pending_max_seats=None,
                trial_ends_at=None,
                cancelled_at=None,
                cancellation_reason=None,
            )
            # A renewal paid early keeps the current period and extends it
            if invoice.period_start <= now:
                update_model.period_start = invoice.period_start
            updated = await self.subscription_repo.update(subscription.id, update_model)

        if invoice.subscription_id is None:
            await self.invoice_service.link_subscription(invoice.id, updated.id)

        logger.info(
            f"Applied {invoice.purpose.value} invoice {invoice.id}: plan {invoice.plan_id}, "
            f"{invoice.seat_count} seats until {invoice.period_end.isoformat()}",
            extra={
                "company_id": invoice.company_id,
                "invoice_id": invoice.id,
                "subscription_id": updated.id,
                "old_status": subscription.status.value if subscription else None,
            },
        )
        return updated

    @trace_span
    async def commit_pending_change(
        self, company_id: int, now: Optional[datetime] = None
    ) -> Tuple[PendingChangeOutcome, Optional[str]]:
        """
        Commit a deferred plan or seat change once its period has ended.

        Refuses, leaving the pending fields in place for the next sweep, when
        the company has more active employees than the new seat count.
        """
        now = now or datetime.utcnow()

        async with tenant_lock(company_id):
            async with transaction():
                subscription = await self.subscription_repo.get_by_company_id(
                    company_id, for_update=True
                )
                if (
                    not subscription
                    or subscription.status not in PENDING_COMMIT_STATUSES
                    or not subscription.has_pending_change()
                    or subscription.period_end > now
                ):
                    return PendingChangeOutcome.SKIPPED, None

                # An open invoice was priced against the current plan and period
                if await self.invoice_service.has_pending_invoice(company_id):
                    logger.info(
                        f"Pending change for subscription {subscription.id} waits on an open invoice",
                        extra={"company_id": company_id, "subscription_id": subscription.id},
                    )
                    return PendingChangeOutcome.SKIPPED, None

                plan = await self.catalog.get_plan(
                    subscription.pending_plan_id or subscription.plan_id
                )
                seats = subscription.pending_max_seats or subscription.max_seats
                if plan.max_seats_included is not None:
                    seats = min(seats, plan.max_seats_included)

                active = await self.employee_repo.count_active_by_company_id(company_id)
                if active > seats:
                    reason = (
                        f"{active} active employees exceed {seats} seats on plan {plan.id}"
                    )
                    logger.warning(
                        f"Pending change for subscription {subscription.id} refused: {reason}",
                        extra={
                            "event": "stuck_pending_change",
                            "company_id": company_id,
                            "subscription_id": subscription.id,
                            "pending_plan_id": subscription.pending_plan_id,
                            "pending_max_seats": subscription.pending_max_seats,
                            "active_employees": active,
                        },
                    )
                    return PendingChangeOutcome.REFUSED, reason

                update_model = SubscriptionUpdateModel(
                    plan_id=plan.id,
                    max_seats=seats,
                    pending_plan_id=None,
                    pending_max_seats=None,
                )
                if subscription.status != SubscriptionStatus.PAST_DUE:
                    update_model.period_start = subscription.period_end
                    update_model.period_end = period_end_for(
                        subscription.period_end, subscription.billing_cycle
                    )
                await self.subscription_repo.update(subscription.id, update_model)

        logger.info(
            f"Committed pending change for subscription {subscription.id}: "
            f"{subscription.plan_id}/{subscription.max_seats} -> {plan.id}/{seats}",
            extra={"company_id": company_id, "subscription_id": subscription.id},
        )
        return PendingChangeOutcome.COMMITTED, None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_purchasable_plan(self, plan_id: str) -> Plan:
        plan = await self.catalog.get_plan(plan_id)
        if not plan.active or plan.price <= 0:
            raise PlanNotAvailableError(f"Plan {plan_id} is not available for purchase")
        return plan

    async def _check_seats_for_plan(
        self, company_id: int, plan: Plan, seat_count: int
    ) -> None:
        if not plan.allows_seats(seat_count):
            raise SeatLimitExceededError(
                f"Plan {plan.name} allows at most {plan.max_seats_included} seats"
            )
        active = await self.employee_repo.count_active_by_company_id(company_id)
        if seat_count < active:
            raise SeatsBelowActiveEmployeesError(
                f"{active} active employees need at least {active} seats"
            )

    async def _payer_email(
        self, company_id: int, payer_email: Optional[str]
    ) -> Optional[str]:
        if payer_email:
            return payer_email
        company = await self.company_repo.get(company_id)
        return company.billing_email if company else None

    @staticmethod
    def _require_status(
        subscription: Subscription, status: SubscriptionStatus
    ) -> None:
        if subscription.status != status:
            raise InvalidSubscriptionStateError(
                f"Action requires an {status.value} subscription, "
                f"current status is {subscription.status.value}"
            )
