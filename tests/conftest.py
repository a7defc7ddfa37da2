"""Shared test fixtures."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.application.repositories.outbox import OutboxRecord
from harbor_realtime.domain.entities.message import Message, MessageSummary
from harbor_realtime.domain.entities.tenant import Tenant
from harbor_realtime.domain.value_objects.enums import MessageType, Role

TENANT_ID = "tenant-1"
ALICE = "alice@harbor.dev"
BOB = "bob@harbor.dev"


@pytest.fixture
def alice() -> Principal:
    return Principal(email=ALICE)


@pytest.fixture
def bob() -> Principal:
    return Principal(email=BOB)


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(email="root@harbor.dev", role=Role.ADMIN)


def make_message(
    *,
    message_id: int = 1,
    tenant_id: str = TENANT_ID,
    sender: str = BOB,
    recipients: tuple[str, ...] = (ALICE,),
    subject: str = "hello",
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=message_id,
        tenant_id=tenant_id,
        sender_email=sender,
        subject=subject,
        body="body",
        message_type=MessageType.SUBSCRIBER.value,
        has_attachments=False,
        attachment_count=0,
        created_at=created_at or datetime.now(timezone.utc),
        recipients=recipients,
    )


def make_summary(message_id: int = 1, subject: str = "hello", **kwargs: Any) -> MessageSummary:
    kwargs.setdefault("sender_email", BOB)
    kwargs.setdefault("sender_name", None)
    kwargs.setdefault("created_at", "2024-01-01T00:00:00+00:00")
    return MessageSummary(id=message_id, subject=subject, **kwargs)


@dataclass
class FakeTenantReader:
    _tenants: dict[str, Tenant] = field(default_factory=dict)
    _members: list[tuple[str, str]] = field(default_factory=list)

    def add(self, tenant_id: str, email: str, name: str = "") -> None:
        self._tenants.setdefault(tenant_id, Tenant(id=tenant_id, name=name or tenant_id))
        self._members.append((email, tenant_id))

    async def list_for_user(self, email: str) -> list[Tenant]:
        return [self._tenants[t] for e, t in self._members if e == email]

    async def primary_for_user(self, email: str) -> Tenant | None:
        tenants = await self.list_for_user(email)
        return tenants[0] if tenants else None

    async def is_member(self, email: str, tenant_id: str) -> bool:
        return (email, tenant_id) in self._members


@dataclass
class FakeMessageReader:
    _messages: dict[int, Message] = field(default_factory=dict)
    _read: set[tuple[int, str]] = field(default_factory=set)

    def _unread(self, email: str, tenant_id: str) -> list[Message]:
        return sorted(
            (
                m for m in self._messages.values()
                if m.tenant_id == tenant_id
                and not m.is_deleted
                and m.message_type == MessageType.SUBSCRIBER.value
                and email in m.recipients
                and (m.id, email) not in self._read
            ),
            key=lambda m: (m.created_at, m.id),
            reverse=True,
        )

    async def get_by_id(self, message_id: int) -> Message | None:
        m = self._messages.get(message_id)
        return None if m is None or m.is_deleted else m

    async def count_unread(self, recipient_email: str, tenant_id: str) -> int:
        return len(self._unread(recipient_email, tenant_id))

    async def recent_unread(self, recipient_email: str, tenant_id: str, *, limit: int = 3) -> list[MessageSummary]:
        return [
            MessageSummary(
                id=m.id,
                subject=m.subject,
                sender_email=m.sender_email,
                sender_name=None,
                created_at=m.created_at.isoformat(),
            )
            for m in self._unread(recipient_email, tenant_id)[:limit]
        ]


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

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
    ) -> Message:
        message_id = max(self._reader._messages, default=0) + 1
        msg = Message(
            id=message_id,
            tenant_id=tenant_id,
            sender_email=sender_email,
            subject=subject,
            body=body,
            message_type=message_type,
            has_attachments=False,
            attachment_count=0,
            created_at=created_at,
            recipients=tuple(recipients),
        )
        self._reader._messages[message_id] = msg
        return msg

    async def mark_read(self, message_id: int, recipient_email: str, read_at: datetime) -> bool:
        key = (message_id, recipient_email)
        if key in self._reader._read:
            return False
        self._reader._read.add(key)
        return True

    async def soft_delete(self, message_id: int) -> None:
        from dataclasses import replace

        msg = self._reader._messages[message_id]
        self._reader._messages[message_id] = replace(msg, is_deleted=True)


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    _pending: list[OutboxRecord] = field(default_factory=list)
    _sent: list[int] = field(default_factory=list)
    _failed: list[int] = field(default_factory=list)

    async def add(self, event_type: str, tenant_id: str, data: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "tenant_id": tenant_id, "data": data})

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        return self._pending[:batch_size]

    async def mark_sent(self, ids: list[int]) -> None:
        self._sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        self._failed.append(record_id)


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    tenants: FakeTenantReader = field(default_factory=FakeTenantReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc: object) -> None:
        pass


class FixedClock:
    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now


class FakeVerifier:
    """Accepts ``Bearer {email}`` like the identity scheme, rejects ``bad``."""

    async def verify(self, token: str) -> Principal:
        if token == "bad" or "@" not in token:
            raise ValueError("invalid token")
        return Principal(email=token.lower())


class FakeTransport:
    """Stands in for the SSE transport; tests drive ``on_event``/``on_status`` directly."""

    def __init__(self, key, on_event, on_status) -> None:
        self.key = key
        self.on_event = on_event
        self.on_status = on_status
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True


def fake_transport_factory(created: list[FakeTransport]):
    def factory(key, on_event, on_status) -> FakeTransport:
        transport = FakeTransport(key, on_event, on_status)
        created.append(transport)
        return transport

    return factory
