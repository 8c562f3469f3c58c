"""Base repository with common CRUD operations."""
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.core.errors import TagConflictError
from tagging_service.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic base repository for common database operations."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """Get model by primary key ID.

        Args:
            id: Primary key value

        Returns:
            Model instance or None if not found
        """
        result = await self.session.execute(
            select(self.model).filter(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Create new model instance.

        The insert runs in a savepoint; a unique-constraint violation
        undoes only that insert and is reported as TagConflictError.

        Args:
            obj: Model instance to create

        Returns:
            Created model instance with ID populated
        """
        try:
            async with self.session.begin_nested():
                self.session.add(obj)
        except IntegrityError as e:
            raise TagConflictError(
                f"{self.model.__name__} violates a uniqueness constraint"
            ) from e
        await self.session.refresh(obj)
        return obj

    async def update(self, obj: ModelType, **values: Any) -> ModelType:
        """Set attributes and flush them in a savepoint.

        Args:
            obj: Model instance to update
            **values: Column values to assign

        Returns:
            Refreshed model instance
        """
        try:
            async with self.session.begin_nested():
                for key, value in values.items():
                    setattr(obj, key, value)
        except IntegrityError as e:
            raise TagConflictError(
                f"{self.model.__name__} violates a uniqueness constraint"
            ) from e
        await self.session.refresh(obj)
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Delete model instance.

        Args:
            obj: Model instance to delete
        """
        await self.session.delete(obj)
        await self.session.flush()
