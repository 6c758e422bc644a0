"""WebSocket handler for real-time progress updates.

Clients connect to /ws/{job_id} and receive live updates while an audit
job runs.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

logger = structlog.get_logger()


class ConnectionManager:
    """Tracks WebSocket connections per job."""

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, job_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.setdefault(job_id, []).append(websocket)
        logger.info("websocket.connected", job_id=job_id)

    def disconnect(self, job_id: str, websocket: WebSocket) -> None:
        if job_id in self._connections:
            self._connections[job_id] = [
                ws for ws in self._connections[job_id] if ws != websocket
            ]
            if not self._connections[job_id]:
                del self._connections[job_id]
        logger.info("websocket.disconnected", job_id=job_id)

    def connection_count(self, job_id: str) -> int:
        return len(self._connections.get(job_id, []))

    async def _broadcast(self, job_id: str, payload: dict[str, Any]) -> None:
        text = json.dumps(payload)
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(job_id, [])):
            try:
                if ws.client_state == WebSocketState.CONNECTED:
                    await ws.send_text(text)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(job_id, ws)

    async def send_progress(self, job_id: str, progress: dict[str, Any], message: str = "") -> None:
        await self._broadcast(
            job_id, {"type": "progress", "message": message, "progress": progress}
        )

    async def send_status(self, job_id: str, message: str) -> None:
        await self._broadcast(job_id, {"type": "status", "message": message})

    async def send_complete(self, job_id: str, result: dict[str, Any]) -> None:
        await self._broadcast(job_id, {"type": "complete", "result": result})

    async def send_error(self, job_id: str, error: str) -> None:
        await self._broadcast(job_id, {"type": "error", "error": error})


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket, job_id: str) -> None:
    """WebSocket endpoint for audit job updates.

    Messages have a "type" of progress, status, complete or error. Clients
    may send {"action": "ping"} and receive {"type": "pong"}.
    """
    await manager.connect(job_id, websocket)
    try:
        while True:
            data = await websocket.receive_text()
            msg = json.loads(data)
            if msg.get("action") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        manager.disconnect(job_id, websocket)
