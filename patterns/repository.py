"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations, row locking for
read-modify-write updates, and FastAPI dependency injection. Verticals
subclass this to add domain-specific queries.

Example: TaskRepository extending BaseRepository.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)

# Columns that are never written through update()
IMMUTABLE_COLUMNS = frozenset({"id", "created_at"})


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + locked reads.

    Subclass and set `model` to your SQLAlchemy model::

        class TaskRepository(BaseRepository[TaskRow]):
            model = TaskRow

            async def list_for_creator(self, user_id: str):
                return await self.list_rows(self.model.created_by == user_id)
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- List --

    async def list_rows(self, *criteria: Any, order_by: Sequence[Any] = ()) -> list[ModelT]:
        """List rows matching all criteria."""
        stmt = select(self.model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # -- Get by ID --

    async def get_row(self, item_id: str, *, for_update: bool = False) -> ModelT | None:
        """Get a single row by ID.

        With ``for_update`` the row stays locked until the transaction ends,
        so a load-modify-write cannot interleave with another writer.
        """
        stmt = select(self.model).where(self.model.id == item_id)
        if for_update:
            # Reload attributes the session already holds from the locked row
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # -- Create --

    async def create_row(self, data: dict[str, Any]) -> ModelT:
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Update --

    async def update_row(self, item_id: str, data: dict[str, Any]) -> ModelT | None:
        """Update an existing row. Returns None if not found."""
        item = await self.get_row(item_id, for_update=True)
        if not item:
            return None

        for key, value in data.items():
            if hasattr(item, key) and key not in IMMUTABLE_COLUMNS:
                setattr(item, key, value)

        await self.session.flush()
        return item

    # -- Delete --

    async def delete_row(self, item_id: str) -> bool:
        """Delete a row. Returns True if deleted, False if not found."""
        item = await self.get_row(item_id)
        if not item:
            return False

        await self.session.delete(item)
        await self.session.flush()
        return True
