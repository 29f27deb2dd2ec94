from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from packages.companies.models.database.company import CompanyEntity
from packages.companies.models.domain.company import Company


class CompanyRepository(BaseRepository[CompanyEntity, Company]):
    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(CompanyEntity, Company, db_session)
