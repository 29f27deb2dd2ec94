from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar, Optional, List, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update
from pydantic import BaseModel

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository with support for both explicit and lazy session management.

    1. Explicit session: pass db_session to the constructor. The session is
       used directly and the caller owns its lifecycle (tests, scripts).

    2. Lazy session: omit db_session. Each operation joins the enclosing
       transaction() or acquires a session and releases it immediately.

    Example:
        repo = SubscriptionRepository()
        async with transaction():
            sub = await repo.get_by_company_id(company_id, for_update=True)
            await repo.update(sub.id, SubscriptionUpdateModel(...))
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Explicit session if one was given, otherwise the lazy scoped one."""
        if self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _add_company_filter(self, query, company_id: int):
        """Add company filtering to any query."""
        return query.where(self.entity_class.company_id == company_id)

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    async def _fetch_one(self, query) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    async def _fetch_all(self, query) -> List[DomainModelType]:
        async with self._get_session() as session:
            result = await session.execute(query)
            return [self._entity_to_domain(e) for e in result.scalars().all()]

    @trace_span
    async def get(
        self, id: Any, company_id: Optional[int] = None, for_update: bool = False
    ) -> Optional[DomainModelType]:
        query = select(self.entity_class).where(self.entity_class.id == id)

        if company_id is not None:
            query = self._add_company_filter(query, company_id)
        if for_update:
            query = query.with_for_update()

        return await self._fetch_one(query)

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Create a new entity from a typed create model."""
        data = create_model.model_dump(exclude_none=True)
        db_obj = self.entity_class(**data)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def update(
        self, id: Any, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Update an entity with a typed update model.

        Only fields explicitly set on the model are written, so ``None`` can
        be used to clear a nullable column.
        """
        data = update_model.model_dump(exclude_unset=True)
        if not data:
            return await self.get(id)

        async with self._get_session() as session:
            await session.execute(
                update(self.entity_class)
                .where(self.entity_class.id == id)
                .values(data)
                .execution_options(synchronize_session=False)
            )
            await session.flush()
        # Identity map still holds the pre-update row
        return await self._fetch_one(
            select(self.entity_class)
            .where(self.entity_class.id == id)
            .execution_options(populate_existing=True)
        )
