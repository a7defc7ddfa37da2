"""Coordination socket envelopes."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → unit."""

    type: str  # message | typing_start | typing_stop | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Unit → client."""

    type: str  # message | typing_start | typing_stop | participant_left | new_workflow_message | pong | error
    data: dict[str, Any] = {}
    timestamp: str | None = None
