from datetime import datetime
from typing import List, Optional
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.billing.exceptions import DuplicatePendingInvoiceError
from packages.billing.models.database.invoice import InvoiceEntity
from packages.billing.models.domain.enums import InvoiceStatus
from packages.billing.models.domain.invoice import Invoice, InvoiceCreateModel


class InvoiceRepository(BaseRepository[InvoiceEntity, Invoice]):
    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(InvoiceEntity, Invoice, db_session)

    @trace_span
    async def create_pending(self, create_model: InvoiceCreateModel) -> Invoice:
        """
        Insert a pending invoice.

        The partial unique index on (company_id) WHERE status = 'pending' is
        the last line against a concurrent double checkout.
        """
        data = create_model.model_dump(exclude_none=True)
        entity = InvoiceEntity(status=InvoiceStatus.PENDING.value, **data)
        async with self._get_session() as session:
            try:
                async with session.begin_nested():
                    session.add(entity)
                    await session.flush()
            except IntegrityError as e:
                message = str(e.orig)
                if "one_pending" in message or "invoices.company_id" in message:
                    raise DuplicatePendingInvoiceError() from e
                raise
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    @trace_span
    async def get_by_provider_invoice_id(
        self, provider_invoice_id: str, for_update: bool = False
    ) -> Optional[Invoice]:
        query = select(InvoiceEntity).where(
            InvoiceEntity.provider_invoice_id == provider_invoice_id
        )
        if for_update:
            query = query.with_for_update()
        return await self._fetch_one(query)

    @trace_span
    async def list_pending_by_company_id(self, company_id: int) -> List[Invoice]:
        query = select(InvoiceEntity).where(
            InvoiceEntity.company_id == company_id,
            InvoiceEntity.status == InvoiceStatus.PENDING.value,
        )
        return await self._fetch_all(query)

    @trace_span
    async def count_pending_by_company_id(self, company_id: int) -> int:
        query = select(func.count(InvoiceEntity.id)).where(
            InvoiceEntity.company_id == company_id,
            InvoiceEntity.status == InvoiceStatus.PENDING.value,
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    @trace_span
    async def list_by_company_id(
        self, company_id: int, limit: int = 100
    ) -> List[Invoice]:
        query = (
            select(InvoiceEntity)
            .where(InvoiceEntity.company_id == company_id)
            .order_by(InvoiceEntity.created_at.desc(), InvoiceEntity.id.desc())
            .limit(limit)
        )
        return await self._fetch_all(query)

    @trace_span
    async def list_stale_pending(self, older_than: datetime) -> List[Invoice]:
        query = (
            select(InvoiceEntity)
            .where(
                InvoiceEntity.status == InvoiceStatus.PENDING.value,
                InvoiceEntity.created_at < older_than,
            )
            .order_by(InvoiceEntity.created_at)
        )
        return await self._fetch_all(query)

    @trace_span
    async def transition_from_pending(
        self, invoice_id: int, to_status: InvoiceStatus, **values
    ) -> bool:
        """
        Compare-and-set ``pending -> to_status``.

        Returns False when the invoice was already terminal, which callers
        treat as an idempotent no-op.
        """
        stmt = (
            update(InvoiceEntity)
            .where(
                InvoiceEntity.id == invoice_id,
                InvoiceEntity.status == InvoiceStatus.PENDING.value,
            )
            .values(status=to_status.value, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        async with self._get_session() as session:
            result = await session.execute(stmt)
            await session.flush()
            return (result.rowcount or 0) == 1
