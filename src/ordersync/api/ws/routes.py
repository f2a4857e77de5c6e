from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ordersync.api.ws.manager import ConnectionManager

router = APIRouter()
logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({"cashier", "kitchen", "manager", "staff"})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Push every change event of one branch to a staff display.

    Clients only listen; anything they send is ignored. After a reconnect a
    client must reload its order list, events are not replayed.
    """
    branch_id = websocket.query_params.get("branch_id")
    role = websocket.query_params.get("role", "staff").lower()
    if not branch_id:
        await websocket.close(code=1008, reason="branch_id query parameter is required")
        return
    if role not in STAFF_ROLES:
        await websocket.close(code=1008, reason=f"unknown role: {role}")
        return

    manager: ConnectionManager = websocket.app.state.ws_manager
    await manager.register(websocket=websocket, branch_id=branch_id, role=role)
    await websocket.send_json({"event_type": "connection.ready", "branch_id": branch_id})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.unregister(websocket)
    except Exception:
        logger.exception("ws_connection_error", extra={"branch_id": branch_id})
        await manager.unregister(websocket)
