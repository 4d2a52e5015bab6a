"""
Real-time push channel over WebSockets.

`emit` is fire-and-forget: it schedules the sends on the running loop and
returns immediately. Scheduled sends stay referenced in `_pending` until they
complete. A socket whose send fails is dropped.
"""

import asyncio
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Connected WebSocket clients"""

    def __init__(self) -> None:
        self.active_connections: Set[WebSocket] = set()
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info(f"Real-time client connected ({len(self.active_connections)} active)")

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.discard(websocket)
        logger.info(f"Real-time client disconnected ({len(self.active_connections)} active)")

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        if not self.active_connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, {event_name} not broadcast")
            return

        message = {"event": event_name, "data": payload}
        for websocket in list(self.active_connections):
            task = loop.create_task(self._send(websocket, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _send(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug(f"Dropping real-time client after send failure: {e}")
            self.active_connections.discard(websocket)


connection_manager = ConnectionManager()
