"""WebSocket connection manager for streamed agent events"""
import asyncio
import logging
from datetime import datetime, timezone

from fastapi import WebSocket

from agents.transcript import AgentEvent

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Tracks open chat sockets.

    Each socket runs its own transcripts; nothing is shared between
    connections except the connection count.
    """

    def __init__(self, max_connections: int = 50):
        self.max_connections = max_connections
        self.active_connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> bool:
        """Accept and register a connection. Returns False (and closes) when full."""
        await websocket.accept()

        async with self._lock:
            if len(self.active_connections) >= self.max_connections:
                full = True
            else:
                full = False
                self.active_connections.add(websocket)

        if full:
            logger.warning("[WS Manager] Connection limit reached")
            await websocket.close(code=1013, reason="Too many connections")
            return False

        await websocket.send_json({
            "type": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
        return True

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection"""
        self.active_connections.discard(websocket)

    async def send_event(self, websocket: WebSocket, event: AgentEvent):
        await websocket.send_json(event.model_dump(mode="json"))

    def get_connection_count(self) -> int:
        return len(self.active_connections)
