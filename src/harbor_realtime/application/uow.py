from __future__ import annotations

from typing import Protocol

from harbor_realtime.application.repositories.message import MessageReader, MessageWriter
from harbor_realtime.application.repositories.outbox import OutboxWriter
from harbor_realtime.application.repositories.tenant import TenantReader


class UnitOfWork(Protocol):
    tenants: TenantReader
    messages: MessageReader
    messages_w: MessageWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
