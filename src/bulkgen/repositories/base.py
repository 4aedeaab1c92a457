"""Base repository: thin async helpers over one ORM model."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bulkgen.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Repositories flush but never commit; the caller owns the transaction."""

    model: ClassVar[type[Base]]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, pk: Any) -> T | None:
        return await self.session.get(self.model, pk, populate_existing=True)

    async def add(self, **values: Any) -> T:
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update_where(self, criteria: list, **values: Any) -> int:
        """Issue a single UPDATE restricted by ``criteria``; return matched row count."""
        stmt = (
            update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def filter_by(self, *order_by: Any, **criteria: Any) -> list[T]:
        stmt = select(self.model).filter_by(**criteria).order_by(*order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
