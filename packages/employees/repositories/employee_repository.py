from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session
from packages.employees.models.database.employee import EmployeeEntity
from packages.employees.models.domain.employee import EmploymentStatus


class EmployeeRepository:
    """Read side of the employee domain consumed by billing seat checks."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        self._explicit_session = db_session

    @trace_span
    async def count_active_by_company_id(self, company_id: int) -> int:
        """Live count of employees currently holding a seat."""
        query = select(func.count(EmployeeEntity.id)).where(
            EmployeeEntity.company_id == company_id,
            EmployeeEntity.employment_status == EmploymentStatus.ACTIVE.value,
        )
        if self._explicit_session is not None:
            result = await self._explicit_session.execute(query)
        else:
            async with get_session(readonly=True) as session:
                result = await session.execute(query)
        return int(result.scalar_one())
