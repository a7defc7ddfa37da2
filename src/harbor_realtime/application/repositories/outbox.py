from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class OutboxRecord:
    """Pending stream event waiting to be fanned out to the tenant's subscribers."""

    id: int
    event_type: str
    tenant_id: str
    data: dict[str, Any]
    attempts: int

    def to_envelope(self) -> dict[str, Any]:
        return {"event_type": self.event_type, "tenant_id": self.tenant_id, "data": self.data}


class OutboxWriter(Protocol):
    async def add(self, event_type: str, tenant_id: str, data: dict[str, Any]) -> None: ...

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]: ...

    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None: ...
