"""
Unit tests for BillingSweepService.

Each test pins ``now`` and builds subscriptions around it.
"""

import asyncio

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from packages.billing.models.domain.enums import InvoiceStatus, SubscriptionStatus
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.sweep_service import BillingSweepService
from packages.companies.models.database.company import CompanyEntity


@pytest.fixture
def now():
    return datetime.utcnow().replace(microsecond=0)


@pytest.fixture
def make_company(test_db):
    async def _make(name: str) -> int:
        company = CompanyEntity(name=name)
        test_db.add(company)
        await test_db.commit()
        await test_db.refresh(company)
        return company.id

    return _make


async def status_of(company_id: int) -> SubscriptionStatus:
    subscription = await SubscriptionRepository().get_by_company_id(company_id)
    return subscription.status


@pytest.mark.asyncio
class TestSweepTransitions:
    async def test_elapsed_periods(self, sweep_service, catalog, make_company, make_subscription, now):
        """Test each status lands where the grace window puts it."""
        cases = {
            "active lapsed": (SubscriptionStatus.ACTIVE, now - timedelta(days=1)),
            "active long lapsed": (SubscriptionStatus.ACTIVE, now - timedelta(days=8)),
            "trial ended": (SubscriptionStatus.TRIAL, now - timedelta(hours=2)),
            "past due in grace": (SubscriptionStatus.PAST_DUE, now - timedelta(days=3)),
            "past due after grace": (SubscriptionStatus.PAST_DUE, now - timedelta(days=10)),
            "cancelled ended": (SubscriptionStatus.CANCELLED, now - timedelta(minutes=1)),
            "cancelled running": (SubscriptionStatus.CANCELLED, now + timedelta(days=3)),
            "active running": (SubscriptionStatus.ACTIVE, now + timedelta(days=3)),
        }
        companies = {}
        for label, (status, period_end) in cases.items():
            company_id = await make_company(label)
            companies[label] = company_id
            plan_id = "trial" if status == SubscriptionStatus.TRIAL else "standard"
            await make_subscription(
                company_id,
                plan_id=plan_id,
                status=status,
                max_seats=5,
                period_start=period_end - timedelta(days=30),
                period_end=period_end,
            )

        report = await sweep_service.run_sweep(now)

        assert report.ok
        assert report.moved_to_past_due == 2
        assert report.moved_to_expired == 3
        assert await status_of(companies["active lapsed"]) == SubscriptionStatus.PAST_DUE
        assert await status_of(companies["active long lapsed"]) == SubscriptionStatus.EXPIRED
        assert await status_of(companies["trial ended"]) == SubscriptionStatus.PAST_DUE
        assert await status_of(companies["past due in grace"]) == SubscriptionStatus.PAST_DUE
        assert await status_of(companies["past due after grace"]) == SubscriptionStatus.EXPIRED
        assert await status_of(companies["cancelled ended"]) == SubscriptionStatus.EXPIRED
        assert await status_of(companies["cancelled running"]) == SubscriptionStatus.CANCELLED
        assert await status_of(companies["active running"]) == SubscriptionStatus.ACTIVE

    async def test_second_sweep_is_a_noop(
        self, sweep_service, catalog, sample_company, make_subscription, now
    ):
        await make_subscription(sample_company.id, period_end=now - timedelta(days=1))

        first = await sweep_service.run_sweep(now)
        second = await sweep_service.run_sweep(now)

        assert first.moved_to_past_due == 1
        assert second.moved_to_past_due == 0
        assert second.moved_to_expired == 0


@pytest.mark.asyncio
class TestSweepPendingChanges:
    async def test_scheduled_downgrade_commits_at_period_end(
        self, sweep_service, subscription_service, catalog, sample_company, make_subscription, now
    ):
        """Test a due downgrade commits and the renewed period keeps the company active."""
        period_end = now - timedelta(minutes=10)
        await make_subscription(
            sample_company.id,
            plan_id="premium",
            pending_plan_id="standard",
            period_start=period_end - timedelta(days=30),
            period_end=period_end,
        )

        report = await sweep_service.run_sweep(now)

        assert report.changes_committed == 1
        assert report.moved_to_past_due == 0
        subscription = await subscription_service.get_subscription(sample_company.id)
        assert subscription.plan_id == "standard"
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.period_end > now

    async def test_refused_change_is_reported_and_kept(
        self,
        sweep_service,
        subscription_service,
        catalog,
        sample_company,
        make_subscription,
        add_employees,
        now,
    ):
        """Test a seat decrease below the active headcount stays pending and is reported."""
        subscription = await make_subscription(
            sample_company.id, pending_max_seats=6, period_end=now - timedelta(hours=1)
        )
        await add_employees(sample_company.id, 8)

        report = await sweep_service.run_sweep(now)

        assert report.changes_committed == 0
        assert len(report.stuck_changes) == 1
        assert report.stuck_changes[0].subscription_id == subscription.id
        assert report.moved_to_past_due == 1

        stored = await subscription_service.get_subscription(sample_company.id)
        assert stored.max_seats == 10
        assert stored.pending_max_seats == 6
        assert stored.status == SubscriptionStatus.PAST_DUE

    async def test_failing_record_does_not_stop_sweep(
        self, subscription_service, invoice_service, catalog, sample_company, make_subscription, now
    ):
        """Test one broken record is reported while the rest of the sweep runs."""
        await make_subscription(
            sample_company.id, pending_max_seats=6, period_end=now - timedelta(hours=1)
        )
        subscription_service.commit_pending_change = AsyncMock(
            side_effect=RuntimeError("boom")
        )
        sweep = BillingSweepService(
            subscription_service=subscription_service, invoice_service=invoice_service
        )

        report = await sweep.run_sweep(now)

        assert not report.ok
        assert "boom" in report.failures[0]
        assert report.moved_to_past_due == 1

    async def test_slow_record_times_out(
        self, subscription_service, invoice_service, catalog, sample_company, make_subscription, now
    ):
        await make_subscription(
            sample_company.id, pending_max_seats=6, period_end=now - timedelta(hours=1)
        )

        async def slow_commit(company_id, now=None):
            await asyncio.sleep(1)

        subscription_service.commit_pending_change = slow_commit
        sweep = BillingSweepService(
            subscription_service=subscription_service,
            invoice_service=invoice_service,
            record_timeout_seconds=0.05,
        )

        report = await sweep.run_sweep(now)

        assert len(report.failures) == 1
        assert report.changes_committed == 0


@pytest.mark.asyncio
class TestSweepStaleInvoices:
    async def test_expires_only_stale_pending_invoices(
        self,
        sweep_service,
        invoice_service,
        mock_payment_provider,
        catalog,
        sample_company,
        second_company,
        make_invoice,
        now,
    ):
        stale = await make_invoice(
            sample_company.id,
            provider_invoice_id="xnd_stale",
            created_at=now - timedelta(hours=25),
        )
        fresh = await make_invoice(
            second_company.id,
            provider_invoice_id="xnd_fresh",
            created_at=now - timedelta(hours=1),
        )

        report = await sweep_service.run_sweep(now)

        assert report.invoices_expired == 1
        assert (
            await invoice_service.get_invoice(sample_company.id, stale.id)
        ).status == InvoiceStatus.EXPIRED
        assert (
            await invoice_service.get_invoice(second_company.id, fresh.id)
        ).status == InvoiceStatus.PENDING
        mock_payment_provider.expire_invoice.assert_awaited_once_with("xnd_stale")

    async def test_stale_invoice_unblocks_new_checkout(
        self, sweep_service, subscription_service, catalog, sample_company, make_invoice, now
    ):
        await make_invoice(sample_company.id, created_at=now - timedelta(hours=30))

        await sweep_service.run_sweep(now)
        invoice = await subscription_service.checkout(sample_company.id, "standard", 5)

        assert invoice.status == InvoiceStatus.PENDING
