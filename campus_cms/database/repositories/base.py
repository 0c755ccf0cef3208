"""Base repository implementation for database operations.

This module provides the generic pieces every resource repository builds on:
- ``BaseRepository``: CRUD helpers bound to one model and one session
- ``SqlListStore``: the SQLAlchemy side of list queries, translating
  ``Criteria`` into WHERE clauses and running count/fetch on their own sessions
- Grouped count helpers used by the statistics endpoints
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from campus_cms.core.logging import get_logger
from campus_cms.core.query import Criteria
from campus_cms.database.session import SessionManager, with_tracing
from campus_cms.models.database.base import Base
from campus_cms.models.domain.common import SortOrder

# Type variable for models
ModelType = TypeVar("ModelType", bound=Base)
logger = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository providing common database operations."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """Initialize repository with model and session.

        Args:
            model: SQLAlchemy model class
            session: AsyncSession instance
        """
        self.model = model
        self.session = session

    def base_query(self) -> Select:
        """Select used for single-row lookups; subclasses add eager loads."""
        return select(self.model)

    async def create(self, **kwargs) -> ModelType:
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            return instance
        except Exception as e:
            logger.error(f"Create failed for {self.model.__name__}", error=e)
            raise

    async def get(self, id: Any) -> Optional[ModelType]:
        try:
            query = self.base_query().where(self.model.id == id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Get failed for {self.model.__name__}", error=e)
            raise

    async def get_by(self, **kwargs) -> Optional[ModelType]:
        try:
            query = self.base_query().filter_by(**kwargs).limit(1)
            result = await self.session.execute(query)
            return result.scalars().first()
        except Exception as e:
            logger.error(f"Get by failed for {self.model.__name__}", error=e)
            raise

    async def get_many(self, ids: Sequence[int]) -> List[ModelType]:
        if not ids:
            return []
        query = self.base_query().where(self.model.id.in_(list(ids)))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, instance: ModelType, **kwargs) -> ModelType:
        """Apply field changes to a loaded instance and flush them."""
        try:
            for field, value in kwargs.items():
                setattr(instance, field, value)
            await self.session.flush()
            return instance
        except Exception as e:
            logger.error(f"Update failed for {self.model.__name__}", error=e)
            raise

    async def delete(self, instance: ModelType) -> None:
        try:
            await self.session.delete(instance)
            await self.session.flush()
        except Exception as e:
            logger.error(f"Delete failed for {self.model.__name__}", error=e)
            raise

    async def exists(self, **kwargs) -> bool:
        query = select(self.model.id).filter_by(**kwargs).limit(1)
        result = await self.session.execute(query)
        return result.first() is not None

    async def count(self, *conditions) -> int:
        query = select(func.count()).select_from(self.model)
        if conditions:
            query = query.where(and_(*conditions))
        result = await self.session.execute(query)
        return result.scalar_one()


class SqlListStore(Generic[ModelType]):
    """List-query store backed by SQLAlchemy.

    Count and fetch are issued concurrently by the query builder, and an
    ``AsyncSession`` cannot run two statements at once, so each call opens
    its own short-lived session from the injected ``SessionManager``.
    """

    def __init__(
        self,
        model: Type[ModelType],
        manager: SessionManager,
        options: Sequence[Any] = ()
    ):
        self.model = model
        self.manager = manager
        self.options = tuple(options)

    def where(self, criteria: Criteria) -> List[Any]:
        conditions = [getattr(self.model, name) == value for name, value in criteria.equals]

        if criteria.search_term:
            conditions.append(or_(*[
                getattr(self.model, name).icontains(criteria.search_term, autoescape=True)
                for name in criteria.search_fields
            ]))

        # Visibility rules go last so nothing above can widen them
        conditions.extend(
            getattr(self.model, name) == value for name, value in criteria.narrowing
        )
        return conditions

    @with_tracing
    async def count(self, criteria: Criteria) -> int:
        query = select(func.count()).select_from(self.model).where(*self.where(criteria))
        async with self.manager.session() as session:
            result = await session.execute(query)
            return result.scalar_one()

    @with_tracing
    async def fetch(
        self,
        criteria: Criteria,
        sort_by: str,
        sort_order: SortOrder,
        offset: int,
        limit: int
    ) -> List[ModelType]:
        column = getattr(self.model, sort_by)
        direction = column.asc() if sort_order == SortOrder.ASC else column.desc()
        tiebreak = self.model.id.asc() if sort_order == SortOrder.ASC else self.model.id.desc()

        query = (
            select(self.model)
            .options(*self.options)
            .where(*self.where(criteria))
            .order_by(direction, tiebreak)
            .offset(offset)
            .limit(limit)
        )
        async with self.manager.session() as session:
            result = await session.execute(query)
            return list(result.scalars().unique().all())


async def grouped_counts(
    manager: SessionManager,
    column: Any,
    *conditions,
    extra: Sequence[Any] = ()
) -> List[Dict[str, Any]]:
    """Count rows per value of ``column``; ``extra`` adds aggregate columns."""
    query = select(column.label("value"), func.count().label("count"), *extra)
    if conditions:
        query = query.where(and_(*conditions))
    query = query.group_by(column).order_by(column)

    async with manager.session() as session:
        result = await session.execute(query)
        return [dict(row._mapping) for row in result]


async def scalar(manager: SessionManager, query: Select) -> Any:
    """Run a single-value aggregate on its own session."""
    async with manager.session() as session:
        result = await session.execute(query)
        return result.scalar_one()
