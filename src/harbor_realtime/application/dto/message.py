from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    tenant_id: str
    subject: str
    body: str
    recipients: list[str] = field(default_factory=list)
