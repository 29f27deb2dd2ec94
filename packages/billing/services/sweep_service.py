"""
Deferred-change sweep.

Applies the transitions that only time triggers: abandoned invoices expire,
scheduled downgrades and seat decreases commit at the period boundary, and
unpaid periods move to past_due and then expired. Each step and each record
fails on its own; the sweep always runs to the end and reports what happened.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.models.domain.enums import (
    PendingChangeOutcome,
    SubscriptionStatus,
)
from packages.billing.models.domain.sweep import StuckPendingChange, SweepReport
from packages.billing.repositories.invoice_repository import InvoiceRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import (
    PENDING_COMMIT_STATUSES,
    SubscriptionService,
)

logger = get_logger(__name__)


class BillingSweepService:
    """Runs one pass of time-based billing transitions."""

    def __init__(
        self,
        subscription_service: Optional[SubscriptionService] = None,
        invoice_service: Optional[InvoiceService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        invoice_repo: Optional[InvoiceRepository] = None,
        record_timeout_seconds: Optional[float] = None,
    ):
        self.invoice_service = invoice_service or InvoiceService()
        self.subscription_service = subscription_service or SubscriptionService(
            invoice_service=self.invoice_service
        )
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.record_timeout_seconds = (
            record_timeout_seconds or settings.billing_sweep_record_timeout_seconds
        )

    @trace_span
    async def run_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or datetime.utcnow()
        report = SweepReport(started_at=now)

        for step in (
            self._expire_stale_invoices,
            self._commit_pending_changes,
            self._transition_elapsed_periods,
        ):
            try:
                await step(now, report)
            except Exception as e:
                report.failures.append(f"{step.__name__}: {e}")
                logger.error(
                    f"Billing sweep step {step.__name__} failed: {e}", exc_info=True
                )

        report.finished_at = datetime.utcnow()
        logger.info(
            f"Billing sweep finished: {report.invoices_expired} invoices expired, "
            f"{report.changes_committed} changes committed, "
            f"{report.moved_to_past_due} past due, {report.moved_to_expired} expired, "
            f"{len(report.stuck_changes)} stuck, {len(report.failures)} failures",
            extra=report.model_dump(mode="json", exclude={"stuck_changes", "failures"}),
        )
        return report

    async def _run_record(self, label: str, coro: Awaitable):
        """Bound one record's work; errors are counted by the caller."""
        try:
            return await asyncio.wait_for(coro, timeout=self.record_timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                f"Billing sweep timed out on {label} after {self.record_timeout_seconds}s"
            )
            raise

    async def _expire_stale_invoices(self, now: datetime, report: SweepReport) -> None:
        cutoff = now - timedelta(hours=settings.stale_invoice_ttl_hours)
        stale = await self.invoice_repo.list_stale_pending(cutoff)

        for invoice in stale:
            try:
                if await self._run_record(
                    f"invoice {invoice.id}",
                    self.invoice_service.expire_stale_invoice(invoice),
                ):
                    report.invoices_expired += 1
            except Exception as e:
                report.failures.append(f"invoice {invoice.id}: {e!r}")
                logger.error(
                    f"Failed to expire stale invoice {invoice.id}: {e}",
                    extra={"company_id": invoice.company_id, "invoice_id": invoice.id},
                )

    async def _commit_pending_changes(self, now: datetime, report: SweepReport) -> None:
        due = await self.subscription_repo.list_with_pending_changes(
            now, PENDING_COMMIT_STATUSES
        )

        for subscription in due:
            try:
                outcome, reason = await self._run_record(
                    f"subscription {subscription.id}",
                    self.subscription_service.commit_pending_change(
                        subscription.company_id, now
                    ),
                )
            except Exception as e:
                report.failures.append(f"subscription {subscription.id}: {e!r}")
                logger.error(
                    f"Failed to commit pending change for subscription {subscription.id}: {e}",
                    extra={
                        "company_id": subscription.company_id,
                        "subscription_id": subscription.id,
                    },
                )
                continue

            if outcome == PendingChangeOutcome.COMMITTED:
                report.changes_committed += 1
            elif outcome == PendingChangeOutcome.REFUSED:
                report.stuck_changes.append(
                    StuckPendingChange(
                        subscription_id=subscription.id,
                        company_id=subscription.company_id,
                        reason=reason or "",
                    )
                )

    async def _transition_elapsed_periods(
        self, now: datetime, report: SweepReport
    ) -> None:
        """
        Set-based status moves. Order matters: expire past the grace window
        first so a long-lapsed active row lands in expired, not past_due.
        """
        grace_cutoff = now - timedelta(days=settings.grace_period_days)

        async with transaction():
            lapsed = await self.subscription_repo.list_expiring(
                now,
                (
                    SubscriptionStatus.TRIAL,
                    SubscriptionStatus.ACTIVE,
                    SubscriptionStatus.PAST_DUE,
                    SubscriptionStatus.CANCELLED,
                ),
            )
            if not lapsed:
                return
            logger.info(f"{len(lapsed)} subscriptions have an elapsed period")

            report.moved_to_expired += await self.subscription_repo.update_expired_to_status(
                (
                    SubscriptionStatus.TRIAL,
                    SubscriptionStatus.ACTIVE,
                    SubscriptionStatus.PAST_DUE,
                ),
                grace_cutoff,
                SubscriptionStatus.EXPIRED,
            )
            report.moved_to_expired += await self.subscription_repo.update_expired_to_status(
                (SubscriptionStatus.CANCELLED,),
                now,
                SubscriptionStatus.EXPIRED,
            )
            report.moved_to_past_due += await self.subscription_repo.update_expired_to_status(
                (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE),
                now,
                SubscriptionStatus.PAST_DUE,
            )
