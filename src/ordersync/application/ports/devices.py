from __future__ import annotations

from enum import Enum
from typing import Protocol


class PermissionState(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class AudioPlayer(Protocol):
    async def play(self, asset: str) -> None: ...

    async def play_tones(self, tones: tuple[tuple[int, int], ...]) -> None: ...


class Vibrator(Protocol):
    def is_available(self) -> bool: ...

    async def vibrate(self, pattern: tuple[int, ...]) -> None: ...


class SystemNotifications(Protocol):
    def permission(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    async def show(self, title: str, body: str, tag: str) -> None: ...
