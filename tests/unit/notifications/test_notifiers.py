from __future__ import annotations

import asyncio
import io
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from ordersync.application.notifications.notifiers import (
    FALLBACK_TONES,
    NEW_ORDER_SOUND,
    VIBRATION_PATTERN,
    BannerNotifier,
    InAppBanner,
    NotificationDeliveryError,
    SoundNotifier,
    SystemPopupNotifier,
    VibrationNotifier,
    format_order_body,
    format_order_title,
)
from ordersync.application.ports.devices import PermissionState
from ordersync.domain.common.ids import BranchId, MenuItemId, OrderId, OrderItemId
from ordersync.domain.common.money import Money
from ordersync.domain.order.entities import (
    DeliveryMethod,
    DraftLine,
    Order,
    PaymentMethod,
    create_order_draft,
)
from ordersync.infrastructure.devices.console import (
    LoggingSystemNotifications,
    NoVibrator,
    TerminalAudioPlayer,
)


def _order() -> Order:
    return create_order_draft(
        order_id=OrderId("ord_001"),
        order_number="000042",
        branch_id=BranchId("brn_001"),
        restaurant_name="Tripoli Grill",
        customer_name="Salem",
        customer_phone="0912345678",
        delivery_method=DeliveryMethod.DELIVERY,
        payment_method=PaymentMethod.CASH,
        lines=[DraftLine(MenuItemId("itm_001"), "Shawarma", Money.from_decimal("25.50", "LYD"), 2)],
        item_ids=[OrderItemId("oit_001")],
        delivery_price=Money.from_decimal("5", "LYD"),
        now=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        delivery_area="Gurji",
    ).order


class FakePlayer:
    def __init__(self, asset_fails: bool = False, tones_fail: bool = False) -> None:
        self.asset_fails = asset_fails
        self.tones_fail = tones_fail
        self.played: list[object] = []

    async def play(self, asset: str) -> None:
        if self.asset_fails:
            raise OSError("autoplay blocked")
        self.played.append(asset)

    async def play_tones(self, tones: tuple[tuple[int, int], ...]) -> None:
        if self.tones_fail:
            raise OSError("no audio device")
        self.played.append(tones)


class FakeVibrator:
    def __init__(self, available: bool) -> None:
        self.available = available
        self.patterns: list[tuple[int, ...]] = []

    def is_available(self) -> bool:
        return self.available

    async def vibrate(self, pattern: tuple[int, ...]) -> None:
        self.patterns.append(pattern)


class FakeSystemNotifications:
    def __init__(self, permission: PermissionState, answer: PermissionState | None = None) -> None:
        self.state = permission
        self.answer = answer
        self.requests = 0
        self.shown: list[tuple[str, str, str]] = []

    def permission(self) -> PermissionState:
        return self.state

    async def request_permission(self) -> PermissionState:
        self.requests += 1
        if self.answer is not None:
            self.state = self.answer
        return self.state

    async def show(self, title: str, body: str, tag: str) -> None:
        self.shown.append((title, body, tag))


def test_order_text() -> None:
    order = _order()

    assert format_order_title(order) == "New order #000042"
    assert format_order_body(order) == "Salem, 56.00 LYD"


@pytest.mark.asyncio
async def test_sound_plays_the_asset() -> None:
    player = FakePlayer()

    await SoundNotifier(player).notify(_order())

    assert player.played == [NEW_ORDER_SOUND]


@pytest.mark.asyncio
async def test_sound_falls_back_to_tones() -> None:
    player = FakePlayer(asset_fails=True)

    await SoundNotifier(player).notify(_order())

    assert player.played == [FALLBACK_TONES]


@pytest.mark.asyncio
async def test_sound_reports_when_no_cue_plays() -> None:
    player = FakePlayer(asset_fails=True, tones_fail=True)

    with pytest.raises(NotificationDeliveryError) as exc_info:
        await SoundNotifier(player).notify(_order())

    assert exc_info.value.channel == "sound"


@pytest.mark.asyncio
async def test_terminal_player_rings_the_bell() -> None:
    stream = io.StringIO()

    await SoundNotifier(TerminalAudioPlayer(stream)).notify(_order())

    assert stream.getvalue() == "\a\a"


@pytest.mark.asyncio
async def test_vibration_only_where_supported() -> None:
    present = FakeVibrator(available=True)
    absent = FakeVibrator(available=False)

    await VibrationNotifier(present).notify(_order())
    await VibrationNotifier(absent).notify(_order())
    await VibrationNotifier(NoVibrator()).notify(_order())

    assert present.patterns == [VIBRATION_PATTERN]
    assert absent.patterns == []


@pytest.mark.asyncio
async def test_popup_asks_for_permission_once_and_shows_when_granted() -> None:
    notifications = FakeSystemNotifications(PermissionState.DEFAULT, answer=PermissionState.GRANTED)
    notifier = SystemPopupNotifier(notifications)

    await notifier.notify(_order())
    await notifier.notify(_order())

    assert notifications.requests == 1
    assert notifications.shown[0] == ("New order #000042", "Salem, 56.00 LYD", "ord_001")
    assert len(notifications.shown) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "permission, answer, requests",
    [
        (PermissionState.DENIED, None, 0),
        (PermissionState.DEFAULT, PermissionState.DENIED, 1),
        (PermissionState.DEFAULT, None, 1),
    ],
)
async def test_popup_is_skipped_without_permission(permission, answer, requests) -> None:
    notifications = FakeSystemNotifications(permission, answer=answer)

    await SystemPopupNotifier(notifications).notify(_order())

    assert notifications.requests == requests
    assert notifications.shown == []


@pytest.mark.asyncio
async def test_logging_notifications_grant_on_request(caplog) -> None:
    notifications = LoggingSystemNotifications()

    with caplog.at_level("INFO"):
        await SystemPopupNotifier(notifications).notify(_order())

    assert notifications.permission() == PermissionState.GRANTED
    assert any(record.getMessage() == "system_notification" for record in caplog.records)


@pytest.mark.asyncio
async def test_banner_expires_on_its_own() -> None:
    banner = InAppBanner(display_seconds=0.05)

    await BannerNotifier(banner).notify(_order())
    assert banner.current is not None
    assert banner.current.title == "New order #000042"

    await asyncio.sleep(0.1)
    assert banner.current is None


@pytest.mark.asyncio
async def test_banner_click_opens_the_order() -> None:
    opened: list[OrderId] = []
    banner = InAppBanner(on_open=opened.append, display_seconds=0.05)
    banner.show(_order())

    clicked = banner.click()
    await asyncio.sleep(0.1)

    assert clicked == "ord_001"
    assert opened == ["ord_001"]
    assert banner.current is None
    assert banner.click() is None
    assert opened == ["ord_001"]


@pytest.mark.asyncio
async def test_new_banner_replaces_the_previous_one() -> None:
    banner = InAppBanner(display_seconds=0.1)
    banner.show(_order())
    await asyncio.sleep(0.06)

    second = banner.show(_order())
    await asyncio.sleep(0.06)

    assert banner.current == second
    banner.dismiss()
    assert banner.current is None
