from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, insert, or_, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ordersync.application.mappers.cursor import decode_cursor, encode_cursor
from ordersync.application.mappers.order_rows import (
    item_from_row,
    item_to_row,
    order_from_row,
    order_to_row,
    status_history_to_rows,
)
from ordersync.application.ports.repositories import StatusConflictError, StoreError
from ordersync.domain.common.ids import BranchId, OrderId
from ordersync.domain.order.entities import Order, OrderItem
from ordersync.domain.order.events import order_inserted, order_item_inserted, order_updated
from ordersync.domain.order.status import OrderStatus
from ordersync.infrastructure.db.models.order import OrderItemModel, OrderModel
from ordersync.infrastructure.db.session import get_sessionmaker
from ordersync.infrastructure.messaging.change_publisher import ChangePublisher

ORDER_NUMBER_SEQUENCE = "order_number_seq"


def _order_values(order: Order) -> dict[str, Any]:
    values = order_to_row(order)
    values.update(
        items_total=order.items_total.to_decimal(),
        delivery_price=order.delivery_price.to_decimal(),
        total_amount=order.total_amount.to_decimal(),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
    return values


def _item_values(item: OrderItem) -> dict[str, Any]:
    values = item_to_row(item)
    values.update(
        item_price=item.item_price.to_decimal(),
        subtotal=item.subtotal.to_decimal(),
        created_at=item.created_at,
    )
    return values


def _model_row(model: OrderModel | OrderItemModel) -> dict[str, Any]:
    return {column.key: getattr(model, column.key) for column in model.__table__.columns}


class SqlAlchemyOrderStore:
    """PostgreSQL order store.

    Implements both the two-step writes and the single-transaction
    ``insert_order_with_items``. Change events are published only after the
    transaction that produced them has committed, and a new order is
    announced only once its items are stored.
    """

    def __init__(
        self,
        currency: str,
        engine: AsyncEngine | None = None,
        changes: ChangePublisher | None = None,
    ) -> None:
        self._currency = currency
        self._sessions: async_sessionmaker[AsyncSession] = get_sessionmaker(engine)
        self._changes = changes

    async def insert_order(self, order: Order) -> Order:
        # Announced by insert_items: the order does not exist for staff until its items do.
        try:
            async with self._sessions() as session:
                await session.execute(insert(OrderModel).values(**_order_values(order)))
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"order {order.order_id} insert failed") from exc
        return order

    async def insert_items(self, items: Sequence[OrderItem]) -> list[OrderItem]:
        if not items:
            return []
        order_ids = {str(item.order_id) for item in items}
        try:
            async with self._sessions() as session:
                await session.execute(insert(OrderItemModel), [_item_values(item) for item in items])
                models = (
                    await session.execute(select(OrderModel).where(OrderModel.id.in_(order_ids)))
                ).scalars().all()
                orders = {model.id: order_from_row(_model_row(model), self._currency) for model in models}
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("order items insert failed") from exc

        for order in orders.values():
            await self._publish_order(order, inserted=True)
        for item in items:
            order = orders.get(str(item.order_id))
            if order is not None:
                await self._publish_item(item, order.branch_id)
        return list(items)

    async def insert_order_with_items(self, order: Order, items: Sequence[OrderItem]) -> Order:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    await session.execute(insert(OrderModel).values(**_order_values(order)))
                    if items:
                        await session.execute(
                            insert(OrderItemModel),
                            [_item_values(item) for item in items],
                        )
        except SQLAlchemyError as exc:
            raise StoreError(f"order {order.order_id} insert failed") from exc

        await self._publish_order(order, inserted=True)
        for item in items:
            await self._publish_item(item, order.branch_id)
        return order

    async def delete_order(self, order_id: OrderId) -> None:
        try:
            async with self._sessions() as session:
                await session.execute(delete(OrderItemModel).where(OrderItemModel.order_id == str(order_id)))
                await session.execute(delete(OrderModel).where(OrderModel.id == str(order_id)))
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"order {order_id} delete failed") from exc

    async def get_order(self, order_id: OrderId) -> Order | None:
        statement = select(OrderModel).where(OrderModel.id == str(order_id)).limit(1)
        try:
            async with self._sessions() as session:
                model = (await session.execute(statement)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"order {order_id} read failed") from exc
        if model is None:
            return None
        return order_from_row(_model_row(model), self._currency)

    async def list_items(self, order_ids: Sequence[OrderId]) -> list[OrderItem]:
        if not order_ids:
            return []
        statement = (
            select(OrderItemModel)
            .where(OrderItemModel.order_id.in_([str(order_id) for order_id in order_ids]))
            .order_by(OrderItemModel.created_at, OrderItemModel.id)
        )
        try:
            async with self._sessions() as session:
                models = list((await session.execute(statement)).scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError("order items read failed") from exc
        return [item_from_row(_model_row(model), self._currency) for model in models]

    async def update_status(self, order: Order, expected_status: OrderStatus) -> Order:
        statement = (
            update(OrderModel)
            .where(
                OrderModel.id == str(order.order_id),
                OrderModel.status == expected_status.value,
            )
            .values(
                status=order.status.value,
                status_history=status_history_to_rows(order.status_history),
                updated_at=order.updated_at,
            )
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(statement)
                if result.rowcount != 1:
                    await session.rollback()
                    raise StatusConflictError(
                        f"order {order.order_id} is no longer {expected_status.value}"
                    )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"order {order.order_id} status update failed") from exc

        await self._publish_order(order, inserted=False)
        return order

    async def list_orders(
        self,
        branch_id: BranchId | None,
        status: OrderStatus | None,
        limit: int,
        cursor: str | None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> tuple[list[Order], str | None]:
        statement = select(OrderModel)
        if branch_id is not None:
            statement = statement.where(OrderModel.branch_id == str(branch_id))
        if status is not None:
            statement = statement.where(OrderModel.status == status.value)
        if created_from is not None:
            statement = statement.where(OrderModel.created_at >= created_from)
        if created_to is not None:
            statement = statement.where(OrderModel.created_at <= created_to)

        if cursor:
            cursor_created_at, cursor_order_id = decode_cursor(cursor)
            statement = statement.where(
                or_(
                    OrderModel.created_at < cursor_created_at,
                    and_(
                        OrderModel.created_at == cursor_created_at,
                        OrderModel.id < cursor_order_id,
                    ),
                )
            )

        statement = statement.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).limit(
            limit + 1
        )
        try:
            async with self._sessions() as session:
                models = list((await session.execute(statement)).scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError("order list read failed") from exc

        has_more = len(models) > limit
        page_models = models[:limit]
        orders = [order_from_row(_model_row(model), self._currency) for model in page_models]
        next_cursor: str | None = None
        if has_more and page_models:
            last = page_models[-1]
            next_cursor = encode_cursor(last.created_at, last.id)
        return orders, next_cursor

    async def generate_order_number(self) -> str:
        try:
            async with self._sessions() as session:
                value = (
                    await session.execute(text(f"SELECT nextval('{ORDER_NUMBER_SEQUENCE}')"))
                ).scalar_one()
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError("order number generation failed") from exc
        return f"{int(value):06d}"

    async def _publish_order(self, order: Order, inserted: bool) -> None:
        if self._changes is None:
            return
        await self._changes.publish(order_inserted(order) if inserted else order_updated(order))

    async def _publish_item(self, item: OrderItem, branch_id: BranchId) -> None:
        if self._changes is None:
            return
        await self._changes.publish(order_item_inserted(item, branch_id))
