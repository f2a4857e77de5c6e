from __future__ import annotations

import io
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ordersync.application.notifications.pipeline import NotificationPipeline
from ordersync.application.sync.order_view import OrderView
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    PaymentMethod,
    create_order_draft,
)
from ordersync.domain.order.events import order_inserted
from ordersync.tools import staff_console


def _view_with_order() -> OrderView:
    order = create_order_draft(
        order_id=OrderId("ord_001"),
        order_number="000012",
        branch_id=BranchId("brn_001"),
        restaurant_name="Tripoli Grill",
        customer_name="Salem",
        customer_phone="0912345678",
        delivery_method=DeliveryMethod.PICKUP,
        payment_method=PaymentMethod.CASH,
        lines=[DraftLine(MenuItemId("itm_002"), "Falafel Plate", Money.from_decimal("18", "LYD"), 2)],
        item_ids=[OrderItemId("oit_001")],
        delivery_price=Money.zero("LYD"),
        now=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    ).order
    view = OrderView(branch_id=BranchId("brn_001"))
    view.apply(order_inserted(order))
    return view


def test_board_lists_orders_with_totals() -> None:
    board = staff_console.render_board(_view_with_order(), pipeline=None, limit=10)

    header, row = board.splitlines()
    assert header.split() == ["#", "status", "customer", "total"]
    assert row.split() == ["000012", "pending", "Salem", "36.00", "LYD"]


@pytest.mark.asyncio
async def test_board_marks_highlighted_orders() -> None:
    view = _view_with_order()
    pipeline = NotificationPipeline([])
    order = view.get(OrderId("ord_001"))
    assert order is not None
    await pipeline.handle_new_order(order)

    board = staff_console.render_board(view, pipeline, limit=10)

    assert board.splitlines()[1].startswith("*000012")
    pipeline.close()


@pytest.mark.asyncio
async def test_once_prints_the_board_from_the_memory_backend(monkeypatch) -> None:
    monkeypatch.setenv("ORDER_STORE_BACKEND", "memory")
    out = io.StringIO()
    args = staff_console._parse_args(["--branch-id", "brn_001", "--once", "--connect-timeout", "2"])

    exit_code = await staff_console.run(args, out)

    assert exit_code == 0
    assert "customer" in out.getvalue()
