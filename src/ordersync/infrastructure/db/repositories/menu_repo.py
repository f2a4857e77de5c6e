from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ordersync.application.ports.repositories import StoreError
from ordersync.domain.common.ids import MenuItemId
from ordersync.infrastructure.db.models.menu import MenuItemModel
from ordersync.infrastructure.db.session import get_sessionmaker


class SqlAlchemyMenuAvailabilityRepository:
    def __init__(self, engine: AsyncEngine | None = None) -> None:
        self._sessions: async_sessionmaker[AsyncSession] = get_sessionmaker(engine)

    async def get_availability(self, item_ids: Sequence[MenuItemId]) -> dict[MenuItemId, bool]:
        if not item_ids:
            return {}
        statement = select(MenuItemModel.id, MenuItemModel.is_available).where(
            MenuItemModel.id.in_([str(item_id) for item_id in item_ids])
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(statement)).all()
        except SQLAlchemyError as exc:
            raise StoreError("menu availability read failed") from exc
        return {MenuItemId(row.id): bool(row.is_available) for row in rows}
