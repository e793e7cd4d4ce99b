"""WebSocket connection handling for live reload.

Connected clients receive a JSON message after every compile and every
error so they can refresh their stylesheets or show the failure.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


@dataclass
class WebSocketConnection:
    """Represents an active WebSocket connection for live reload."""

    client_id: str  # Unique client identifier
    websocket: WebSocket  # WebSocket instance (FastAPI WebSocket)

    async def send(self, message: dict[str, Any]) -> bool:
        """Send a message; returns False if the connection is gone."""
        try:
            await self.websocket.send_json(message)
            return True
        except (WebSocketDisconnect, RuntimeError):
            return False


class ConnectionManager:
    """Tracks live-reload clients and broadcasts to them."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocketConnection] = {}

    async def connect(self, websocket: WebSocket) -> WebSocketConnection:
        await websocket.accept()
        connection = WebSocketConnection(client_id=uuid.uuid4().hex, websocket=websocket)
        self._connections[connection.client_id] = connection
        logger.debug(f"Client connected: {connection.client_id}")
        return connection

    def disconnect(self, connection: WebSocketConnection) -> None:
        if self._connections.pop(connection.client_id, None) is not None:
            logger.debug(f"Client disconnected: {connection.client_id}")

    def get_connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to every client, dropping dead connections."""
        for connection in list(self._connections.values()):
            if not await connection.send(message):
                self.disconnect(connection)

    async def send_compile(self, imports: list[str]) -> None:
        await self.broadcast({"type": "compile", "imports": imports})

    async def send_error(self, message: str) -> None:
        await self.broadcast({"type": "error", "message": message})


async def websocket_endpoint(websocket: WebSocket, manager: ConnectionManager) -> None:
    """Serve one live-reload client until it disconnects."""
    connection = await manager.connect(websocket)
    try:
        while True:
            # Clients only ping; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection)
