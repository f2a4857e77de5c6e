from __future__ import annotations

import asyncio
from decimal import Decimal

from sqlalchemy import inspect
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from ordersync.infrastructure.db.models.menu import MenuItemModel
from ordersync.infrastructure.db.session import get_engine, get_sessionmaker

SEED_BRANCH_ID = "brn_001"

SEED_MENU_ITEMS: list[dict[str, object]] = [
    {
        "id": "itm_001",
        "branch_id": SEED_BRANCH_ID,
        "name": "Chicken Shawarma",
        "price": Decimal("25.50"),
        "is_available": True,
    },
    {
        "id": "itm_002",
        "branch_id": SEED_BRANCH_ID,
        "name": "Falafel Plate",
        "price": Decimal("18.00"),
        "is_available": True,
    },
    {
        "id": "itm_003",
        "branch_id": SEED_BRANCH_ID,
        "name": "Mint Lemonade",
        "price": Decimal("8.00"),
        "is_available": True,
    },
    {
        "id": "itm_004",
        "branch_id": SEED_BRANCH_ID,
        "name": "Kunafa",
        "price": Decimal("15.00"),
        "is_available": False,
    },
]


def _table_names(connection: Connection) -> set[str]:
    return set(inspect(connection).get_table_names(schema="public"))


async def seed() -> bool:
    engine = get_engine(timeout_seconds=2.0)
    async with engine.connect() as connection:
        tables = await connection.run_sync(_table_names)
    if "menu_items" not in tables:
        print("no schema yet")
        return False

    async with get_sessionmaker(engine)() as session:
        for item in SEED_MENU_ITEMS:
            await session.execute(
                insert(MenuItemModel)
                .values(**item)
                .on_conflict_do_update(
                    index_elements=[MenuItemModel.id],
                    set_={
                        "branch_id": item["branch_id"],
                        "name": item["name"],
                        "price": item["price"],
                        "is_available": item["is_available"],
                    },
                )
            )
        await session.commit()
    print("seed complete")
    return True


def main() -> None:
    asyncio.run(seed())


if __name__ == "__main__":
    main()
