from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Staff display sockets grouped by branch."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._socket_to_branch: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, websocket: WebSocket, branch_id: str, role: str) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[branch_id].add(websocket)
            self._socket_to_branch[websocket] = branch_id
        logger.info("ws_client_connected", extra={"branch_id": branch_id, "reason": role})

    async def unregister(self, websocket: WebSocket) -> None:
        async with self._lock:
            branch_id = self._socket_to_branch.pop(websocket, None)
            if branch_id is None:
                return
            sockets = self._connections.get(branch_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    self._connections.pop(branch_id, None)
        logger.info("ws_client_disconnected", extra={"branch_id": branch_id})

    def connection_count(self, branch_id: str) -> int:
        return len(self._connections.get(branch_id, ()))

    async def broadcast(self, branch_id: str, message_json_str: str) -> None:
        async with self._lock:
            targets = list(self._connections.get(branch_id, set()))

        stale: list[WebSocket] = []
        for websocket in targets:
            try:
                await websocket.send_text(message_json_str)
            except Exception:
                stale.append(websocket)

        for websocket in stale:
            await self.unregister(websocket)
