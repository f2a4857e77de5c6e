"""Device adapters for a terminal staff console.

The bell character stands in for the audio cue; system notifications are
written to the log. There is no vibrator on a terminal.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from ordersync.application.ports.devices import PermissionState

logger = logging.getLogger(__name__)


class TerminalAudioPlayer:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    async def play(self, asset: str) -> None:
        # A terminal cannot decode audio assets.
        raise OSError(f"cannot play {asset} on a terminal")

    async def play_tones(self, tones: tuple[tuple[int, int], ...]) -> None:
        self._stream.write("\a" * len(tones))
        self._stream.flush()


class NoVibrator:
    def is_available(self) -> bool:
        return False

    async def vibrate(self, pattern: tuple[int, ...]) -> None:
        return None


class LoggingSystemNotifications:
    def __init__(self, permission: PermissionState = PermissionState.DEFAULT, grant: bool = True) -> None:
        self._permission = permission
        self._grant = grant

    def permission(self) -> PermissionState:
        return self._permission

    async def request_permission(self) -> PermissionState:
        if self._permission == PermissionState.DEFAULT:
            self._permission = PermissionState.GRANTED if self._grant else PermissionState.DENIED
        return self._permission

    async def show(self, title: str, body: str, tag: str) -> None:
        logger.info("system_notification", extra={"title": title, "body": body, "tag": tag})
