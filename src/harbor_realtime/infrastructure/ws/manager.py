"""Sockets attached to a single coordination unit."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from harbor_realtime.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class SocketGroup:
    """Tracks a unit's open WebSockets per user and broadcasts to them."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}

    def add(self, ws: WebSocket, user_key: str) -> None:
        self._connections.setdefault(user_key, set()).add(ws)
        logger.debug("Socket attached: %s (users=%d)", user_key, len(self._connections))

    def remove(self, ws: WebSocket, user_key: str) -> bool:
        """Detach ``ws``; return True if that was the user's last socket."""
        conns = self._connections.get(user_key)
        if not conns:
            return False
        conns.discard(ws)
        if conns:
            return False
        del self._connections[user_key]
        logger.debug("Socket detached: %s", user_key)
        return True

    def is_connected(self, user_key: str) -> bool:
        return bool(self._connections.get(user_key))

    @property
    def users(self) -> list[str]:
        return sorted(self._connections)

    def __len__(self) -> int:
        return sum(len(c) for c in self._connections.values())

    async def broadcast(self, event_type: str, data: dict[str, Any], timestamp: str | None = None) -> int:
        raw = WsOutbound(type=event_type, data=data, timestamp=timestamp).model_dump_json()
        sent = 0
        dead: list[tuple[str, WebSocket]] = []
        for key, conns in list(self._connections.items()):
            for ws in list(conns):
                try:
                    await ws.send_text(raw)
                    sent += 1
                except Exception:
                    dead.append((key, ws))
        for key, ws in dead:
            self.remove(ws, key)
        return sent

    async def send_to(self, user_key: str, event_type: str, data: dict[str, Any]) -> None:
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(user_key, ())):
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.remove(ws, user_key)

    def prune(self) -> int:
        """Drop sockets whose client side has already gone away."""
        removed = 0
        for key, conns in list(self._connections.items()):
            for ws in list(conns):
                if ws.client_state == WebSocketState.DISCONNECTED:
                    self.remove(ws, key)
                    removed += 1
        return removed
