"""Base repository with common database operations."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_api.models.orm.base import Base

T = TypeVar("T", bound=Base)
D = TypeVar("D", bound=BaseModel)


class BaseRepository(Generic[T, D]):
    """Base repository with common CRUD operations.

    Rows are returned as domain models (``schema``) so services never hold
    ORM instances.
    """

    model: type[T]
    schema: type[D]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    def _to_domain(self, instance: T | None) -> D | None:
        if instance is None:
            return None
        return self.schema.model_validate(instance)

    async def _get_orm(self, id: UUID) -> T | None:
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get(self, id: UUID) -> D | None:
        """Get a record by ID.

        Args:
            id: Record UUID

        Returns:
            Record or None if not found
        """
        return self._to_domain(await self._get_orm(id))

    async def get_by_id(self, id: UUID) -> D | None:
        """Get a record by ID (alias for get)."""
        return await self.get(id)

    async def get_all(self, offset: int = 0, limit: int = 100) -> list[D]:
        """Get all records with pagination.

        Args:
            offset: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of records
        """
        result = await self.session.execute(select(self.model).offset(offset).limit(limit))
        return [self.schema.model_validate(row) for row in result.scalars().all()]

    async def count(self) -> int:
        """Count total records."""
        result = await self.session.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    async def create(self, **kwargs: Any) -> D:
        """Create a new record.

        Args:
            **kwargs: Field values

        Returns:
            Created record
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return self.schema.model_validate(instance)

    async def update(self, id: UUID, **kwargs: Any) -> D | None:
        """Update a record by ID.

        Args:
            id: Record UUID
            **kwargs: Fields to update

        Returns:
            Updated record or None if not found
        """
        instance = await self._get_orm(id)
        if instance is None:
            return None

        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return self.schema.model_validate(instance)

    async def delete(self, id: UUID) -> bool:
        """Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """
        instance = await self._get_orm(id)
        if instance is None:
            return False

        await self.session.delete(instance)
        await self.session.flush()
        return True
