from __future__ import annotations

from typing import Any, Protocol


class EventPublisher(Protocol):
    """Fan-out bus between outbox workers and API processes.

    ``payload`` is an outbox envelope: ``{"event_type", "tenant_id", "data"}``.
    """

    async def publish(self, channel: str, payload: dict[str, Any]) -> None: ...
