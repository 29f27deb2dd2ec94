"""
Unit tests for InvoiceService.

The payment provider is mocked; database interactions are NOT mocked.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from common.core.exceptions import TransientError
from packages.billing.exceptions import (
    DuplicatePendingInvoiceError,
    InvoiceNotFoundError,
    InvoiceNotPendingError,
)
from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    InvoiceStatus,
)
from packages.billing.models.domain.invoice import InvoiceCreateModel
from packages.billing.repositories.invoice_repository import InvoiceRepository


def checkout_model(company_id: int, seat_count: int = 10) -> InvoiceCreateModel:
    now = datetime.utcnow()
    return InvoiceCreateModel(
        company_id=company_id,
        purpose=InvoicePurpose.CHECKOUT,
        amount=Decimal("12000") * seat_count,
        description=f"HRIS Standard Plan - {seat_count} seats (Monthly)",
        plan_id="standard",
        plan_name="Standard",
        price_per_seat=Decimal("12000"),
        seat_count=seat_count,
        billing_cycle=BillingCycle.MONTHLY,
        period_start=now,
        period_end=now + timedelta(days=30),
    )


@pytest.mark.asyncio
class TestCreateInvoiceForAction:
    """Tests for opening invoices with the provider."""

    async def test_creates_pending_invoice_with_provider_details(
        self, invoice_service, mock_payment_provider, catalog, sample_company
    ):
        """Test the local row carries the provider id and URL."""
        invoice = await invoice_service.create_invoice_for_action(
            checkout_model(sample_company.id), payer_email="owner@acme.test"
        )

        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.provider_invoice_id == "xnd_inv_1"
        assert invoice.provider_invoice_url.endswith("xnd_inv_1")
        assert invoice.expires_at is not None
        assert invoice.subscription_id is None

        call = mock_payment_provider.create_invoice.call_args
        assert call.kwargs["external_id"] == f"checkout-{sample_company.id}-{invoice.id}"
        assert call.kwargs["amount"] == Decimal("120000")
        assert call.kwargs["payer_email"] == "owner@acme.test"
        assert call.kwargs["invoice_duration_seconds"] == 24 * 3600

    async def test_custom_invoice_duration(
        self, invoice_service, mock_payment_provider, catalog, sample_company
    ):
        await invoice_service.create_invoice_for_action(
            checkout_model(sample_company.id), invoice_duration_seconds=600
        )

        call = mock_payment_provider.create_invoice.call_args
        assert call.kwargs["invoice_duration_seconds"] == 600

    async def test_second_pending_invoice_rejected(
        self, invoice_service, mock_payment_provider, catalog, sample_company
    ):
        """Test only one pending invoice per company."""
        await invoice_service.create_invoice_for_action(checkout_model(sample_company.id))

        with pytest.raises(DuplicatePendingInvoiceError):
            await invoice_service.create_invoice_for_action(
                checkout_model(sample_company.id, seat_count=20)
            )

        assert mock_payment_provider.create_invoice.call_count == 1

    async def test_pending_invoices_are_per_company(
        self, invoice_service, catalog, sample_company, second_company
    ):
        await invoice_service.create_invoice_for_action(checkout_model(sample_company.id))
        invoice = await invoice_service.create_invoice_for_action(
            checkout_model(second_company.id)
        )

        assert invoice.company_id == second_company.id

    async def test_unique_index_blocks_concurrent_pending_insert(
        self, catalog, sample_company
    ):
        """Test the database rejects a second pending row even without the pre-check."""
        repo = InvoiceRepository()
        await repo.create_pending(checkout_model(sample_company.id))

        with pytest.raises(DuplicatePendingInvoiceError):
            await repo.create_pending(checkout_model(sample_company.id))

    async def test_provider_failure_cancels_local_invoice(
        self, invoice_service, mock_payment_provider, catalog, sample_company
    ):
        """Test a failed provider call leaves nothing pending behind."""
        mock_payment_provider.create_invoice.side_effect = TransientError("timeout")

        with pytest.raises(TransientError):
            await invoice_service.create_invoice_for_action(
                checkout_model(sample_company.id)
            )

        invoices = await invoice_service.list_invoices(sample_company.id)
        assert len(invoices) == 1
        assert invoices[0].status == InvoiceStatus.CANCELLED
        assert await invoice_service.has_pending_invoice(sample_company.id) is False


@pytest.mark.asyncio
class TestInvoiceTransitions:
    """Tests for compare-and-set status changes."""

    async def test_mark_paid_once(
        self, invoice_service, catalog, sample_company, make_invoice
    ):
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_1")
        paid_at = datetime(2024, 5, 1, 12, 0)

        assert await invoice_service.mark_paid(invoice.id, "EWALLET", "OVO", paid_at)
        assert not await invoice_service.mark_paid(invoice.id, "EWALLET", "OVO", paid_at)

        stored = await invoice_service.get_invoice(sample_company.id, invoice.id)
        assert stored.status == InvoiceStatus.PAID
        assert stored.paid_at == paid_at
        assert stored.payment_method == "EWALLET"
        assert stored.payment_channel == "OVO"

    async def test_terminal_invoice_cannot_change(
        self, invoice_service, catalog, sample_company, make_invoice
    ):
        """Test expired invoices never become paid."""
        invoice = await make_invoice(sample_company.id, status=InvoiceStatus.EXPIRED)

        assert not await invoice_service.mark_paid(
            invoice.id, None, None, datetime.utcnow()
        )
        assert not await invoice_service.mark_cancelled(invoice.id)

        stored = await invoice_service.get_invoice(sample_company.id, invoice.id)
        assert stored.status == InvoiceStatus.EXPIRED

    async def test_mark_expired(self, invoice_service, catalog, sample_company, make_invoice):
        invoice = await make_invoice(sample_company.id)

        assert await invoice_service.mark_expired(invoice.id)
        assert await invoice_service.has_pending_invoice(sample_company.id) is False

    async def test_find_by_provider_invoice_id(
        self, invoice_service, catalog, sample_company, make_invoice
    ):
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_find")

        found = await invoice_service.find_by_provider_invoice_id("xnd_find")
        assert found.id == invoice.id
        assert await invoice_service.find_by_provider_invoice_id("missing") is None


@pytest.mark.asyncio
class TestInvoiceQueries:
    async def test_get_invoice_scoped_to_company(
        self, invoice_service, catalog, sample_company, second_company, make_invoice
    ):
        """Test a company cannot read another company's invoice."""
        invoice = await make_invoice(second_company.id)

        with pytest.raises(InvoiceNotFoundError):
            await invoice_service.get_invoice(sample_company.id, invoice.id)

    async def test_list_invoices_newest_first(
        self, invoice_service, catalog, sample_company, make_invoice
    ):
        now = datetime.utcnow()
        older = await make_invoice(
            sample_company.id,
            status=InvoiceStatus.PAID,
            created_at=now - timedelta(days=40),
        )
        newer = await make_invoice(sample_company.id, created_at=now)

        invoices = await invoice_service.list_invoices(sample_company.id)

        assert [i.id for i in invoices] == [newer.id, older.id]


@pytest.mark.asyncio
class TestCancelPendingInvoice:
    async def test_cancel_pending_invoice(
        self,
        invoice_service,
        mock_payment_provider,
        catalog,
        sample_company,
        make_invoice,
    ):
        """Test the owner can abandon a pending invoice and the provider copy is expired."""
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_c1")

        cancelled = await invoice_service.cancel_pending_invoice(
            sample_company.id, invoice.id
        )

        assert cancelled.status == InvoiceStatus.CANCELLED
        mock_payment_provider.expire_invoice.assert_awaited_once_with("xnd_c1")

    async def test_cancel_paid_invoice_rejected(
        self, invoice_service, catalog, sample_company, make_invoice
    ):
        invoice = await make_invoice(sample_company.id, status=InvoiceStatus.PAID)

        with pytest.raises(InvoiceNotPendingError):
            await invoice_service.cancel_pending_invoice(sample_company.id, invoice.id)

    async def test_provider_expiry_failure_is_not_fatal(
        self,
        invoice_service,
        mock_payment_provider,
        catalog,
        sample_company,
        make_invoice,
    ):
        mock_payment_provider.expire_invoice.side_effect = TransientError("down")
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_c2")

        cancelled = await invoice_service.cancel_pending_invoice(
            sample_company.id, invoice.id
        )

        assert cancelled.status == InvoiceStatus.CANCELLED

    async def test_cancel_uses_tenant_lock(
        self, invoice_service, lock_provider, catalog, sample_company, make_invoice
    ):
        invoice = await make_invoice(sample_company.id)

        await invoice_service.cancel_pending_invoice(sample_company.id, invoice.id)

        assert f"billing:tenant:{sample_company.id}" in lock_provider.acquired
        assert lock_provider.held == {}


@pytest.mark.asyncio
class TestExpireStaleInvoice:
    async def test_expire_stale_invoice(
        self,
        invoice_service,
        mock_payment_provider,
        catalog,
        sample_company,
        make_invoice,
    ):
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_s1")

        assert await invoice_service.expire_stale_invoice(invoice) is True
        mock_payment_provider.expire_invoice.assert_awaited_once_with("xnd_s1")

    async def test_expire_already_paid_is_noop(
        self,
        invoice_service,
        mock_payment_provider,
        catalog,
        sample_company,
        make_invoice,
    ):
        """Test a payment that landed first wins over the sweep."""
        invoice = await make_invoice(sample_company.id, provider_invoice_id="xnd_s2")
        await invoice_service.mark_paid(invoice.id, None, None, datetime.utcnow())

        assert await invoice_service.expire_stale_invoice(invoice) is False
        mock_payment_provider.expire_invoice.assert_not_called()
