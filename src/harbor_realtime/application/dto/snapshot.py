from __future__ import annotations

from dataclasses import dataclass, field

from harbor_realtime.domain.entities.message import MessageSummary


@dataclass(frozen=True, slots=True)
class UnreadSnapshot:
    unread_count: int
    tenant_id: str
    tenant_name: str
    timestamp: str
    recent_unread_messages: list[MessageSummary] = field(default_factory=list)
