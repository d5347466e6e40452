"""WebSocket connection management for the task change feed."""

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks connected clients and fans store events out to them."""

    def __init__(self) -> None:
        """Initialize connection manager with no clients."""
        self.active_connections: list[WebSocket] = []
        self._pending: set[asyncio.Task[None]] = set()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register a new WebSocket connection.

        Args:
            websocket: WebSocket connection to register
        """
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"[ConnectionManager] Client connected (total: {len(self.active_connections)})")

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection from the active list.

        Args:
            websocket: WebSocket connection to remove
        """
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(
                f"[ConnectionManager] Client disconnected (total: {len(self.active_connections)})"
            )

    def publish(self, event: dict[str, Any]) -> None:
        """Store listener: schedule a broadcast of event on the running loop.

        Store listeners are synchronous, so the send happens in a task.
        Without a running loop (or without clients) the event is dropped.

        Args:
            event: Store event, e.g. {"type": "tasks_changed"}
        """
        if not self.active_connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"[ConnectionManager] No event loop; dropping {event.get('type')}")
            return
        task = loop.create_task(self.broadcast(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send message as JSON to every client, dropping the ones that fail.

        Args:
            message: Dictionary to send as JSON to all clients
        """
        if not self.active_connections:
            return

        message_json = json.dumps(message)
        logger.debug(
            f"[ConnectionManager] Broadcasting to {len(self.active_connections)} clients: "
            f"{message_json}"
        )

        dead_connections = []
        for connection in list(self.active_connections):
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.warning(f"[ConnectionManager] Failed to send to client: {e}")
                dead_connections.append(connection)

        for connection in dead_connections:
            self.disconnect(connection)
