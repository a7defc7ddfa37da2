from __future__ import annotations

from typing import Any, Protocol


class UnitStorage(Protocol):
    """Durable key/value state for coordination units, keyed by address."""

    async def load(self, address: str) -> dict[str, Any] | None: ...

    async def save(self, address: str, state: dict[str, Any]) -> None: ...
