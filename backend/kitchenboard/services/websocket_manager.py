"""WebSocket connection manager for live board updates."""
import asyncio
import json
import logging
from datetime import datetime
from typing import Set, Optional, Dict, Any, Iterable

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages display connections and broadcasts board events to all of them."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"Display connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a disconnected WebSocket."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"Display disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: Dict[str, Any]):
        """Broadcast a message to all connected displays."""
        if not self.active_connections:
            return

        message_json = json.dumps(message, default=str)

        async with self._lock:
            connections = list(self.active_connections)

        # Send to all connections, removing any that fail
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(message_json)
            except Exception as e:
                logger.debug(f"Failed to send to WebSocket: {e}")
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    self.active_connections.discard(ws)

    async def broadcast_health(self, health: str):
        await self.broadcast({
            "type": "health",
            "health": health,
            "at": datetime.utcnow().isoformat(),
        })

    async def broadcast_orders_changed(self, order_ids: Iterable[int], tick: int):
        """The board's order set was refreshed; displays should re-fetch /api/board."""
        await self.broadcast({
            "type": "orders_refreshed",
            "tick": tick,
            "order_ids": sorted(order_ids),
        })

    async def broadcast_new_orders(
        self,
        order_ids: Iterable[int],
        source: str,
        badge_count: int,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ):
        await self.broadcast({
            "type": "new_orders",
            "order_ids": list(order_ids),
            "source": source,
            "badge_count": badge_count,
            "title": title,
            "body": body,
        })

    async def broadcast_status_update(
        self,
        order_id: int,
        status: str,
        origin: str,
        success: bool,
        detail: Optional[str] = None,
    ):
        """Report a transition outcome. Failures use their own event type."""
        await self.broadcast({
            "type": "status_updated" if success else "status_update_failed",
            "order_id": order_id,
            "status": status,
            "origin": origin,
            "detail": detail,
        })

    @property
    def connection_count(self) -> int:
        """Return the number of active connections."""
        return len(self.active_connections)
