import json
import logging
from typing import Any, Dict, List

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Sockets of the users connected to this process, for delivery without Redis."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self.active_connections.get(user_id, [])
        if websocket in sockets:
            sockets.remove(websocket)
        if not sockets:
            self.active_connections.pop(user_id, None)

    async def deliver(self, user_id: str, event: Dict[str, Any]) -> int:
        """Send one event to every socket of a user. Returns how many sockets got it."""
        payload = json.dumps(event)
        delivered = 0
        for ws in list(self.active_connections.get(user_id, [])):
            if ws.application_state != WebSocketState.CONNECTED:
                self.disconnect(user_id, ws)
                continue
            await ws.send_text(payload)
            delivered += 1
        if delivered:
            logger.debug(f"Delivered {event.get('type')} event to {delivered} socket(s) of {user_id}")
        return delivered


manager = ConnectionManager()
