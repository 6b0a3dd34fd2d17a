"""Base repository with the async CRUD operations shared by all repositories."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Async database operations for one model, bound to one session.

    Example:
        class BookingRepository(BaseRepository[Booking]):
            def __init__(self, session: AsyncSession):
                super().__init__(Booking, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def get_by_id(self, id: Any, for_update: bool = False) -> ModelType | None:
        """Get entity by primary key.

        Args:
            id: Entity ID
            for_update: Lock the row with SELECT ... FOR UPDATE

        Returns:
            Entity or None if not found
        """
        if for_update:
            stmt = (
                select(self.model)
                .where(self.model.id == id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        return await self.session.get(self.model, id)

    async def find_by(self, **filters: Any) -> list[ModelType]:
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, entity: ModelType) -> ModelType:
        """Add a new entity and flush it."""
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete(self, entity: ModelType) -> None:
        await self.session.delete(entity)
        await self.session.flush()

    async def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = stmt.filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, **filters: Any) -> bool:
        return await self.count(**filters) > 0
