"""
Invoice workflow.

Creates one invoice per billing action and owns every invoice status change.
Status changes are compare-and-set from ``pending``, so replays are no-ops.
"""

from datetime import datetime
from typing import List, Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import (
    DuplicatePendingInvoiceError,
    InvoiceNotFoundError,
    InvoiceNotPendingError,
)
from packages.billing.locking import tenant_lock
from packages.billing.models.domain.enums import InvoiceStatus
from packages.billing.models.domain.invoice import (
    Invoice,
    InvoiceCreateModel,
    InvoiceUpdateModel,
)
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.invoice_repository import InvoiceRepository

logger = get_logger(__name__)


class InvoiceService:
    """Service for invoice creation and status transitions."""

    def __init__(
        self,
        invoice_repo: Optional[InvoiceRepository] = None,
        payment_provider: Optional[PaymentProviderInterface] = None,
    ):
        self.invoice_repo = invoice_repo or InvoiceRepository()
        self.payment_provider = payment_provider or get_payment_provider()

    @trace_span
    async def create_invoice_for_action(
        self,
        create_model: InvoiceCreateModel,
        payer_email: Optional[str] = None,
        invoice_duration_seconds: Optional[int] = None,
    ) -> Invoice:
        """
        Create a pending invoice and open it with the payment provider.

        Callers hold the tenant lock. The local row is written first so the
        pending-invoice guard fires before anything reaches the provider; if
        the provider call fails the row is cancelled so it cannot block the
        next attempt.

        Raises:
            DuplicatePendingInvoiceError: the company already has a pending invoice
            TransientError: the provider could not be reached
        """
        if await self.has_pending_invoice(create_model.company_id):
            raise DuplicatePendingInvoiceError()

        invoice = await self.invoice_repo.create_pending(create_model)

        duration = invoice_duration_seconds or settings.xendit_invoice_expiry_hours * 3600
        try:
            provider_invoice = await self.payment_provider.create_invoice(
                external_id=f"{create_model.purpose}-{create_model.company_id}-{invoice.id}",
                amount=invoice.amount,
                description=invoice.description or invoice.plan_name,
                invoice_duration_seconds=duration,
                payer_email=payer_email,
            )
        except Exception as e:
            logger.error(
                f"Provider invoice creation failed for invoice {invoice.id}: {e}",
                extra={"company_id": invoice.company_id, "invoice_id": invoice.id},
            )
            await self.invoice_repo.transition_from_pending(
                invoice.id, InvoiceStatus.CANCELLED
            )
            raise

        invoice = await self.invoice_repo.update(
            invoice.id,
            InvoiceUpdateModel(
                provider_invoice_id=provider_invoice.id,
                provider_invoice_url=provider_invoice.invoice_url,
                expires_at=provider_invoice.expires_at,
            ),
        )
        logger.info(
            f"Created {create_model.purpose} invoice {invoice.id} for company {invoice.company_id}",
            extra={
                "company_id": invoice.company_id,
                "invoice_id": invoice.id,
                "provider_invoice_id": provider_invoice.id,
                "amount": str(invoice.amount),
            },
        )
        return invoice

    @trace_span
    async def mark_paid(
        self,
        invoice_id: int,
        payment_method: Optional[str],
        payment_channel: Optional[str],
        paid_at: datetime,
    ) -> bool:
        """Mark a pending invoice paid. Returns False if it was already terminal."""
        transitioned = await self.invoice_repo.transition_from_pending(
            invoice_id,
            InvoiceStatus.PAID,
            paid_at=paid_at,
            payment_method=payment_method,
            payment_channel=payment_channel,
        )
        if not transitioned:
            logger.info(f"Invoice {invoice_id} already terminal, mark_paid is a no-op")
        return transitioned

    @trace_span
    async def mark_expired(self, invoice_id: int) -> bool:
        """Mark a pending invoice expired. Returns False if it was already terminal."""
        return await self.invoice_repo.transition_from_pending(
            invoice_id, InvoiceStatus.EXPIRED
        )

    @trace_span
    async def mark_cancelled(self, invoice_id: int) -> bool:
        """Mark a pending invoice cancelled. Returns False if it was already terminal."""
        return await self.invoice_repo.transition_from_pending(
            invoice_id, InvoiceStatus.CANCELLED
        )

    @trace_span
    async def find_by_provider_invoice_id(
        self, provider_invoice_id: str, for_update: bool = False
    ) -> Optional[Invoice]:
        return await self.invoice_repo.get_by_provider_invoice_id(
            provider_invoice_id, for_update=for_update
        )

    @trace_span
    async def has_pending_invoice(self, company_id: int) -> bool:
        return await self.invoice_repo.count_pending_by_company_id(company_id) > 0

    @trace_span
    async def list_pending_invoices(self, company_id: int) -> List[Invoice]:
        return await self.invoice_repo.list_pending_by_company_id(company_id)

    @trace_span
    async def link_subscription(self, invoice_id: int, subscription_id: int) -> Invoice:
        """Attach a first-checkout invoice to the subscription its payment created."""
        return await self.invoice_repo.update(
            invoice_id, InvoiceUpdateModel(subscription_id=subscription_id)
        )

    @trace_span
    async def list_invoices(self, company_id: int) -> List[Invoice]:
        return await self.invoice_repo.list_by_company_id(company_id)

    @trace_span
    async def get_invoice(self, company_id: int, invoice_id: int) -> Invoice:
        invoice = await self.invoice_repo.get(invoice_id, company_id=company_id)
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    @trace_span
    async def cancel_pending_invoice(self, company_id: int, invoice_id: int) -> Invoice:
        """Owner abandons a pending invoice so a new billing action can start."""
        async with tenant_lock(company_id):
            invoice = await self.get_invoice(company_id, invoice_id)
            if invoice.status != InvoiceStatus.PENDING:
                raise InvoiceNotPendingError(
                    f"Invoice {invoice_id} is {invoice.status.value}"
                )
            if not await self.mark_cancelled(invoice_id):
                raise InvoiceNotPendingError(f"Invoice {invoice_id} is no longer pending")

        await self.expire_at_provider(invoice)
        logger.info(
            f"Cancelled pending invoice {invoice_id} for company {company_id}",
            extra={"company_id": company_id, "invoice_id": invoice_id},
        )
        return await self.get_invoice(company_id, invoice_id)

    @trace_span
    async def expire_stale_invoice(self, invoice: Invoice) -> bool:
        """Expire one abandoned pending invoice. Used by the sweep."""
        async with tenant_lock(invoice.company_id):
            async with transaction():
                expired = await self.mark_expired(invoice.id)
        if expired:
            await self.expire_at_provider(invoice)
            logger.info(
                f"Expired stale invoice {invoice.id} for company {invoice.company_id}",
                extra={"company_id": invoice.company_id, "invoice_id": invoice.id},
            )
        return expired

    async def expire_at_provider(self, invoice: Invoice) -> None:
        """Best effort: the local status is authoritative and callbacks for it are ignored."""
        if not invoice.provider_invoice_id:
            return
        try:
            await self.payment_provider.expire_invoice(invoice.provider_invoice_id)
        except Exception as e:
            logger.warning(
                f"Could not expire provider invoice {invoice.provider_invoice_id}: {e}",
                extra={"company_id": invoice.company_id, "invoice_id": invoice.id},
            )
