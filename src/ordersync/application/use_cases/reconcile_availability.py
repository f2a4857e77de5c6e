from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ordersync.application.metrics.order_lifecycle import record_availability_conflict
from ordersync.application.ports.repositories import MenuAvailabilityRepository, StoreError
from ordersync.domain.cart.entities import Cart, CartItem
from ordersync.domain.common.ids import BranchId, MenuItemId

logger = logging.getLogger(__name__)


class AvailabilityCheckError(Exception):
    pass


class AvailabilityConflictError(Exception):
    """Some cart items are no longer available; the customer has to choose.

    With ``can_proceed`` the customer may commit the available items only,
    otherwise the only remaining choice is to abandon the order.
    """

    def __init__(self, available: list[CartItem], unavailable: list[CartItem]) -> None:
        names = ", ".join(item.name for item in unavailable)
        super().__init__(f"items are no longer available: {names}")
        self.available = available
        self.unavailable = unavailable
        self.can_proceed = bool(available)
        self.details = {
            "available": [_item_details(item) for item in available],
            "unavailable": [_item_details(item) for item in unavailable],
            "canProceed": self.can_proceed,
        }


def _item_details(item: CartItem) -> dict[str, object]:
    return {"id": str(item.item_id), "name": item.name, "quantity": item.quantity}


@dataclass(frozen=True)
class AvailabilityResult:
    available: list[CartItem]
    unavailable: list[CartItem]

    @property
    def has_conflict(self) -> bool:
        return bool(self.unavailable)


class AvailabilityReconciler:
    def __init__(self, menu_repository: MenuAvailabilityRepository) -> None:
        self._menu_repository = menu_repository

    async def reconcile(self, cart: Cart) -> AvailabilityResult:
        items = cart.items
        try:
            flags = await self._menu_repository.get_availability(
                [item.item_id for item in items]
            )
        except StoreError as exc:
            raise AvailabilityCheckError("could not verify item availability") from exc

        available: list[CartItem] = []
        unavailable: list[CartItem] = []
        for item in items:
            # Items missing from the catalog count as unavailable.
            if flags.get(item.item_id, False):
                available.append(item)
            else:
                unavailable.append(item)
        return AvailabilityResult(available=available, unavailable=unavailable)


def resolve_availability(
    result: AvailabilityResult,
    branch_id: BranchId,
    accepted_unavailable: Iterable[MenuItemId] | None = None,
) -> list[CartItem]:
    """Return the items that may be committed or raise for a customer decision.

    Consent only counts when it covers every item that is unavailable right
    now; if more items went away since the customer agreed, ask again.
    """
    if not result.has_conflict:
        return result.available

    accepted = set(accepted_unavailable) if accepted_unavailable is not None else None
    unavailable_ids = {item.item_id for item in result.unavailable}
    if accepted is None or not unavailable_ids <= accepted or not result.available:
        record_availability_conflict(str(branch_id))
        logger.info(
            "availability_conflict",
            extra={
                "branch_id": str(branch_id),
                "unavailable_count": len(result.unavailable),
                "can_proceed": bool(result.available),
            },
        )
        raise AvailabilityConflictError(
            available=result.available,
            unavailable=result.unavailable,
        )
    return result.available
