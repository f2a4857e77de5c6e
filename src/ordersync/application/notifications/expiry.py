from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable


class ExpiryTimers:
    """Keyed one-shot timers on the running event loop.

    Scheduling a key that already has a timer replaces it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: dict[Hashable, asyncio.TimerHandle] = {}

    def schedule(self, key: Hashable, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.cancel(key)
        loop = self._loop or asyncio.get_running_loop()

        def fire() -> None:
            self._handles.pop(key, None)
            callback()

        self._handles[key] = loop.call_later(delay_seconds, fire)

    def cancel(self, key: Hashable) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        return key in self._handles

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
