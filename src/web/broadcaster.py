"""WebSocket connection manager for pushing count snapshots to dashboards"""

import asyncio
import json
import logging
from threading import Lock
from typing import Optional, Set

from fastapi import WebSocket

from models.snapshot import CountsSnapshot


class WebSocketManager:
    """
    Tracks connected dashboard clients and broadcasts JSON messages to them.

    Broadcasts are coroutines on the server's event loop. The host loop runs
    on another thread and hands snapshots over with publish_snapshot(), which
    schedules the broadcast onto the loop bound at server startup.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        self._loop = loop

    async def add_connection(self, websocket: WebSocket) -> None:
        with self._lock:
            self._connections.add(websocket)
        logging.info(f"WebSocket client connected. Total connections: {self.get_total_connections()}")

    async def remove_connection(self, websocket: WebSocket) -> None:
        with self._lock:
            self._connections.discard(websocket)
        logging.info(f"WebSocket client disconnected. Total connections: {self.get_total_connections()}")

    async def send(self, websocket: WebSocket, message: dict) -> bool:
        """Send one message to one client. Returns False if the send failed."""
        try:
            await websocket.send_text(json.dumps(message))
            return True
        except Exception as e:
            logging.warning(f"Failed to send WebSocket message: {e}")
            return False

    async def broadcast(self, message: dict) -> int:
        """
        Send a message to every connected client.

        Clients whose send fails are dropped.

        Returns:
            Number of clients the message reached.
        """
        with self._lock:
            connections = list(self._connections)
        if not connections:
            return 0

        try:
            message_json = json.dumps(message)
        except (TypeError, ValueError) as e:
            logging.error(f"Failed to serialize message to JSON: {e}")
            return 0

        sent = 0
        dead = []
        for websocket in connections:
            try:
                await websocket.send_text(message_json)
                sent += 1
            except Exception as e:
                logging.warning(f"Dropping WebSocket client after send failure: {e}")
                dead.append(websocket)

        if dead:
            with self._lock:
                for websocket in dead:
                    self._connections.discard(websocket)

        logging.debug(f"Broadcast sent to {sent}/{len(connections)} clients")
        return sent

    def publish_snapshot(self, snapshot: CountsSnapshot) -> None:
        """
        Thread-safe entry point for the host loop.

        Drops the snapshot when no client is connected or the server loop is
        not running.
        """
        if self.get_total_connections() == 0:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(snapshot.to_wire_dict()), loop)

    def get_total_connections(self) -> int:
        with self._lock:
            return len(self._connections)


manager = WebSocketManager()
