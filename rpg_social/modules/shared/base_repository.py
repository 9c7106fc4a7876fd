"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction for SQLAlchemy 2.0 async data
access. Repositories encapsulate queries; services own transactions and
business rules.

Design Notes
------------
This base repository provides:
- Primary-key and predicate lookups
- Optional eager loading of relationships
- Existence/counting utilities
- Debug-level structured logging

What this class does NOT do:
- Manage transactions (DatabaseService.get_transaction does)
- Resolve write conflicts (optimistic ``version`` columns plus
  DatabaseRetryPolicy do)
- Contain business logic

Usage
-----
    class QuestProgressRepository(BaseRepository[QuestProgress]):
        async def find_active_for_user(self, session, user_id):
            return await self.find_many_where(
                session,
                QuestProgress.user_id == user_id,
                QuestProgress.status == QuestStatus.ACTIVE.value,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        eager_load: Optional[List[InstrumentedAttribute]] = None,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(
            self.model_class.id == id_value  # type: ignore
        )

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )

        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        eager_load: Optional[List[InstrumentedAttribute]] = None,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "found": instance is not None},
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        eager_load: Optional[List[InstrumentedAttribute]] = None,
        order_by: Optional[Iterable[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            eager_load: Optional list of relationships to eagerly load
            order_by: Optional ordering expressions
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        if order_by is not None:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )

        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar() or 0

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )

        return count

    async def add(self, session: AsyncSession, instance: T) -> T:
        """
        Add a new instance and flush so generated ids are populated.

        Note: does NOT commit; the surrounding transaction does.
        """
        session.add(instance)
        await session.flush()

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": getattr(instance, "id", None),
            },
        )

        return instance

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes; a stale version surfaces here as StaleDataError."""
        await session.flush()
