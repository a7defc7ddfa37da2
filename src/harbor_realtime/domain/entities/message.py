from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    tenant_id: str
    sender_email: str
    subject: str
    body: str
    message_type: str
    has_attachments: bool
    attachment_count: int
    created_at: datetime
    recipients: tuple[str, ...] = ()
    is_deleted: bool = False


@dataclass(frozen=True, slots=True)
class MessageSummary:
    """Preview of an unread message as shown next to the unread badge."""

    id: int
    subject: str
    sender_email: str
    sender_name: str | None
    created_at: str
    has_attachments: bool = False
    attachment_count: int = 0
    attachment_ids: frozenset[int] = field(default_factory=frozenset)
    link_ids: frozenset[int] = field(default_factory=frozenset)
