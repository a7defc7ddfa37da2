from __future__ import annotations

from typing import Protocol

from harbor_realtime.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a bearer value into the caller's identity; raises on anything it rejects."""

    async def verify(self, token: str) -> Principal: ...
