from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from ordersync.application.notifications.expiry import ExpiryTimers
from ordersync.application.ports.devices import (
    AudioPlayer,
    PermissionState,
    SystemNotifications,
    Vibrator,
)
from ordersync.domain.common.ids import OrderId
from ordersync.domain.order.entities import Order

logger = logging.getLogger(__name__)

NEW_ORDER_SOUND = "new-order.mp3"
FALLBACK_TONES: tuple[tuple[int, int], ...] = ((880, 150), (660, 150))
VIBRATION_PATTERN: tuple[int, ...] = (200, 100, 200)
BANNER_SECONDS = 5.0


class NotificationDeliveryError(Exception):
    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class Notifier(Protocol):
    channel: str

    async def notify(self, order: Order) -> None: ...


def format_order_title(order: Order) -> str:
    return f"New order #{order.order_number}"


def format_order_body(order: Order) -> str:
    amount = order.total_amount.to_decimal()
    return f"{order.customer_name}, {amount} {order.total_amount.currency}"


class SoundNotifier:
    channel = "sound"

    def __init__(self, player: AudioPlayer, asset: str = NEW_ORDER_SOUND) -> None:
        self._player = player
        self._asset = asset

    async def notify(self, order: Order) -> None:
        try:
            await self._player.play(self._asset)
            return
        except Exception:
            logger.info(
                "notification_sound_fallback",
                extra={"order_id": str(order.order_id), "asset": self._asset},
            )
        try:
            await self._player.play_tones(FALLBACK_TONES)
        except Exception as exc:
            raise NotificationDeliveryError(self.channel, "audio cue could not play") from exc


class VibrationNotifier:
    channel = "vibration"

    def __init__(self, vibrator: Vibrator, pattern: tuple[int, ...] = VIBRATION_PATTERN) -> None:
        self._vibrator = vibrator
        self._pattern = pattern

    async def notify(self, order: Order) -> None:
        if not self._vibrator.is_available():
            return
        await self._vibrator.vibrate(self._pattern)


class SystemPopupNotifier:
    channel = "system_popup"

    def __init__(self, notifications: SystemNotifications) -> None:
        self._notifications = notifications

    async def notify(self, order: Order) -> None:
        permission = self._notifications.permission()
        if permission == PermissionState.DEFAULT:
            permission = await self._notifications.request_permission()
        if permission != PermissionState.GRANTED:
            return
        await self._notifications.show(
            title=format_order_title(order),
            body=format_order_body(order),
            tag=str(order.order_id),
        )


@dataclass(frozen=True)
class BannerState:
    order_id: OrderId
    title: str
    body: str
    shown_at: datetime


class InAppBanner:
    """The single in-app banner announcing the latest new order.

    It clears itself after ``display_seconds``. Clicking it cancels that timer
    before handing the order to ``on_open``.
    """

    def __init__(
        self,
        on_open: Callable[[OrderId], None] | None = None,
        display_seconds: float = BANNER_SECONDS,
        timers: ExpiryTimers | None = None,
    ) -> None:
        self._on_open = on_open
        self._display_seconds = display_seconds
        self._timers = timers or ExpiryTimers()
        self._current: BannerState | None = None

    @property
    def current(self) -> BannerState | None:
        return self._current

    def show(self, order: Order) -> BannerState:
        state = BannerState(
            order_id=order.order_id,
            title=format_order_title(order),
            body=format_order_body(order),
            shown_at=datetime.now(timezone.utc),
        )
        self._current = state
        self._timers.schedule("banner", self._display_seconds, self._expire)
        return state

    def click(self) -> OrderId | None:
        state = self._current
        self._timers.cancel("banner")
        self._current = None
        if state is None:
            return None
        if self._on_open is not None:
            self._on_open(state.order_id)
        return state.order_id

    def dismiss(self) -> None:
        self._timers.cancel("banner")
        self._current = None

    def _expire(self) -> None:
        self._current = None


class BannerNotifier:
    channel = "banner"

    def __init__(self, banner: InAppBanner) -> None:
        self._banner = banner

    async def notify(self, order: Order) -> None:
        self._banner.show(order)
