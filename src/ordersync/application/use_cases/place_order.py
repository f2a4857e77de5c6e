from __future__ import annotations

import logging
from datetime import datetime, timezone

from ordersync.application.dto.requests import PlaceOrderRequest
from ordersync.application.dto.responses import OrderPlacedResponse
from ordersync.application.mappers.order_mapper import to_order_placed_response
from ordersync.application.metrics.order_lifecycle import record_order_created
from ordersync.application.ports.repositories import MenuAvailabilityRepository, OrderStore
from ordersync.application.use_cases.build_order import (
    OrderNumberAllocator,
    build_order_draft,
    cart_from_request,
    is_fallback_order_number,
    validate_order_request,
)
from ordersync.application.use_cases.reconcile_availability import (
    AvailabilityReconciler,
    resolve_availability,
)
from ordersync.application.use_cases.write_order import OrderWriter
from ordersync.domain.common.ids import BranchId, MenuItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import DeliveryMethod

logger = logging.getLogger(__name__)


class PlaceOrder:
    """Validate, reconcile, number and write a customer order.

    Nothing is retried here: a failed write is reported to the caller, who
    still holds the cart and decides whether to submit again.
    """

    def __init__(
        self,
        order_store: OrderStore,
        menu_repository: MenuAvailabilityRepository,
        currency: str,
        writer: OrderWriter | None = None,
    ) -> None:
        self._currency = currency
        self._reconciler = AvailabilityReconciler(menu_repository)
        self._order_numbers = OrderNumberAllocator(order_store)
        self._writer = writer or OrderWriter(order_store)

    async def execute(
        self,
        branch_id: BranchId,
        request_dto: PlaceOrderRequest,
    ) -> OrderPlacedResponse:
        validate_order_request(request_dto)
        cart = cart_from_request(request_dto, self._currency)

        result = await self._reconciler.reconcile(cart)
        accepted = request_dto.accepted_unavailable_item_ids
        committable = resolve_availability(
            result,
            branch_id=branch_id,
            accepted_unavailable=(
                [MenuItemId(item_id) for item_id in accepted] if accepted is not None else None
            ),
        )
        if result.has_conflict:
            cart = cart.only({item.item_id for item in committable})

        order_number = await self._order_numbers.allocate()
        draft = build_order_draft(
            branch_id=branch_id,
            request_dto=request_dto,
            cart=cart,
            order_number=order_number,
            delivery_price=self._delivery_price(request_dto),
            now=datetime.now(timezone.utc),
        )
        written = await self._writer.write(draft)

        order = written.order
        record_order_created(order)
        logger.info(
            "order_placed",
            extra={
                "order_id": str(order.order_id),
                "order_number": order.order_number,
                "branch_id": str(branch_id),
                "fallback_order_number": is_fallback_order_number(order.order_number),
                "dropped_items": len(result.unavailable),
            },
        )
        return to_order_placed_response(order)

    def _delivery_price(self, request_dto: PlaceOrderRequest) -> Money:
        if request_dto.delivery_method != DeliveryMethod.DELIVERY:
            return Money.zero(self._currency)
        if request_dto.delivery_price is None:
            # The distance quote was unavailable; the price stays unknown (zero).
            return Money.zero(self._currency)
        return Money.from_decimal(request_dto.delivery_price, self._currency)
