"""
WebSocket channel for live counts.

Clients get the current counts on connect and a throttled push whenever
counts change. Clients may send {"cmd": "reset"} or {"cmd": "ping"}.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..broadcaster import manager
from ..state import state

router = APIRouter()


def handle_command(message: str) -> Optional[Dict[str, Any]]:
    """
    Apply one client command.

    Returns:
        A reply for the sending client, or None if nothing should be sent back.
    """
    try:
        payload = json.loads(message)
    except (TypeError, ValueError):
        logging.warning(f"Ignoring malformed WebSocket message: {message!r}")
        return None

    cmd = payload.get("cmd") if isinstance(payload, dict) else None
    engine = state.engine

    if cmd == "reset":
        if engine is None:
            return {"cmd": "error", "detail": "counter not running"}
        # The throttled push delivers the zeroed counts to every client.
        engine.request_reset()
        return None

    if cmd == "ping":
        ts = engine.ctx.clock() if engine is not None else 0
        return {"cmd": "pong", "ts": ts}

    logging.warning(f"Ignoring unknown WebSocket command: {cmd!r}")
    return None


@router.websocket("/ws")
async def counts_socket(websocket: WebSocket):
    await websocket.accept()
    await manager.add_connection(websocket)
    try:
        snapshot = state.get_snapshot()
        if snapshot is not None:
            await manager.send(websocket, snapshot.to_wire_dict())

        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            message = frame.get("text")
            if message is None:
                logging.warning("Ignoring non-text WebSocket frame")
                continue
            logging.debug(f"WebSocket rx: {message}")
            reply = handle_command(message)
            if reply is not None:
                await manager.send(websocket, reply)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.remove_connection(websocket)
