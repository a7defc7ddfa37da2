from __future__ import annotations

from datetime import datetime
from typing import Protocol

from harbor_realtime.domain.entities.message import Message, MessageSummary


class MessageReader(Protocol):
    async def get_by_id(self, message_id: int) -> Message | None: ...

    async def count_unread(self, recipient_email: str, tenant_id: str) -> int: ...

    async def recent_unread(
        self,
        recipient_email: str,
        tenant_id: str,
        *,
        limit: int = 3,
    ) -> list[MessageSummary]: ...


class MessageWriter(Protocol):
    async def create(
        self,
        *,
        tenant_id: str,
        sender_email: str,
        subject: str,
        body: str,
        recipients: list[str],
        message_type: str,
        created_at: datetime,
    ) -> Message: ...

    async def mark_read(self, message_id: int, recipient_email: str, read_at: datetime) -> bool:
        """Flip the recipient row to read. Return False if it was already read or absent."""
        ...

    async def soft_delete(self, message_id: int) -> None: ...
