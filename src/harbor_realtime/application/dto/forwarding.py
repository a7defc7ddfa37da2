from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ForwardedRequest:
    """A request as seen by the coordination unit that owns the entity."""

    method: str
    action: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        if not self.body:
            return {}
        return json.loads(self.body)


@dataclass(frozen=True, slots=True)
class UnitResponse:
    status: int
    body: Any = None
    media_type: str = "application/json"

    @classmethod
    def text(cls, status: int, message: str) -> UnitResponse:
        return cls(status=status, body=message, media_type="text/plain")

    @classmethod
    def json(cls, body: Any, status: int = 200) -> UnitResponse:
        return cls(status=status, body=body)
