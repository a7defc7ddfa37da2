"""Client-side unread state and its reconciliation rules.

Push events can arrive twice, out of order, or interleaved with snapshot
responses. Every rule below is idempotent per message id, so replaying an
event never moves the count twice.
"""
from __future__ import annotations

import dataclasses
from collections import OrderedDict
from typing import Iterable

from harbor_realtime.domain.entities.message import MessageSummary
from harbor_realtime.domain.events.stream import (
    AttachmentAdded,
    AttachmentRemoved,
    ConnectionEstablished,
    LinkAdded,
    LinkRemoved,
    MessageDelete,
    MessageNew,
    MessageRead,
    MessageUpdate,
    StreamEvent,
    UnreadUpdate,
)

DEFAULT_RECENT_LIMIT = 3
APPLIED_ID_MEMORY = 512


class _LruSet:
    """Bounded set; the oldest entries fall out first."""

    def __init__(self, maxsize: int) -> None:
        self._maxsize = maxsize
        self._items: OrderedDict[object, None] = OrderedDict()

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: object) -> None:
        self._items[item] = None
        self._items.move_to_end(item)
        while len(self._items) > self._maxsize:
            self._items.popitem(last=False)

    def clear(self) -> None:
        self._items.clear()


class UnreadState:
    def __init__(
        self,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        id_memory: int = APPLIED_ID_MEMORY,
    ) -> None:
        self.recent_limit = recent_limit
        self.count = 0
        self.recent: tuple[MessageSummary, ...] = ()
        self.connected = False
        self.error: str | None = None
        self.version = 0

        self._seen_new = _LruSet(id_memory)
        self._seen_read = _LruSet(id_memory)
        self._consumed = _LruSet(id_memory)
        self._removed_attachments = _LruSet(id_memory)

    def _bump(self) -> bool:
        self.version += 1
        return True

    def _set_count(self, value: int) -> None:
        self.count = max(0, value)

    def _find(self, message_id: int) -> MessageSummary | None:
        return next((m for m in self.recent if m.id == message_id), None)

    def _drop(self, message_id: int) -> bool:
        kept = tuple(m for m in self.recent if m.id != message_id)
        if len(kept) == len(self.recent):
            return False
        self.recent = kept
        return True

    def _replace(self, summary: MessageSummary) -> None:
        self.recent = tuple(summary if m.id == summary.id else m for m in self.recent)

    def replace_from_snapshot(self, count: int, recent: Iterable[MessageSummary]) -> bool:
        recent = tuple(recent)[: self.recent_limit]
        count = max(0, count)
        error_cleared = self.error is not None
        self.error = None
        if count == self.count and recent == self.recent and not error_cleared:
            return False
        self.count = count
        self.recent = recent
        return self._bump()

    def reset(self) -> bool:
        if self.count == 0 and not self.recent and self.error is None:
            return False
        self.count = 0
        self.recent = ()
        self.error = None
        return self._bump()

    def record_error(self, message: str) -> bool:
        if self.error == message:
            return False
        self.error = message
        return self._bump()

    def set_connected(self, connected: bool) -> bool:
        if self.connected == connected:
            return False
        self.connected = connected
        return self._bump()

    def apply(self, event: StreamEvent, user_email: str) -> bool:
        """Apply one push event. Returns True when anything observable changed."""
        user = user_email.strip().lower()

        if isinstance(event, MessageNew):
            return self._on_new(event, user)
        if isinstance(event, MessageRead):
            return self._on_read(event, user)
        if isinstance(event, MessageDelete):
            return self._on_delete(event)
        if isinstance(event, MessageUpdate):
            return self._on_update(event)
        if isinstance(event, (AttachmentAdded, AttachmentRemoved)):
            return self._on_attachment(event)
        if isinstance(event, (LinkAdded, LinkRemoved)):
            return self._on_link(event)
        if isinstance(event, UnreadUpdate):
            if event.data.count == self.count:
                return False
            self._set_count(event.data.count)
            return self._bump()
        if isinstance(event, ConnectionEstablished):
            return self.set_connected(True)
        return False

    def _on_new(self, event: MessageNew, user: str) -> bool:
        data = event.data
        recipients = {r.strip().lower() for r in data.recipients}
        if user not in recipients or data.sender_email.strip().lower() == user:
            return False
        if data.message_id in self._seen_new or data.message_id in self._consumed:
            return False
        self._seen_new.add(data.message_id)
        if self._find(data.message_id) is not None:
            return False

        summary = MessageSummary(
            id=data.message_id,
            subject=data.subject,
            sender_email=data.sender_email,
            sender_name=data.sender_name,
            created_at=data.timestamp,
            has_attachments=data.has_attachments,
            attachment_count=data.attachment_count,
        )
        self._set_count(self.count + 1)
        self.recent = ((summary,) + self.recent)[: self.recent_limit]
        return self._bump()

    def _on_read(self, event: MessageRead, user: str) -> bool:
        data = event.data
        if data.read_by.strip().lower() != user:
            return False
        if data.message_id in self._seen_read or data.message_id in self._consumed:
            return False
        self._seen_read.add(data.message_id)
        self._consumed.add(data.message_id)
        self._set_count(self.count - 1)
        self._drop(data.message_id)
        return self._bump()

    def _on_delete(self, event: MessageDelete) -> bool:
        message_id = event.data.message_id
        if message_id in self._consumed:
            return False
        self._consumed.add(message_id)
        if not self._drop(message_id):
            return False
        self._set_count(self.count - 1)
        return self._bump()

    def _on_update(self, event: MessageUpdate) -> bool:
        summary = self._find(event.data.message_id)
        if summary is None:
            return False
        changes = event.data.changes
        fields: dict[str, object] = {}
        if "subject" in changes and changes["subject"] != summary.subject:
            fields["subject"] = str(changes["subject"])
        if "senderName" in changes and changes["senderName"] != summary.sender_name:
            fields["sender_name"] = changes["senderName"]
        if not fields:
            return False
        self._replace(dataclasses.replace(summary, **fields))
        return self._bump()

    def _on_attachment(self, event: AttachmentAdded | AttachmentRemoved) -> bool:
        data = event.data
        summary = self._find(data.message_id)
        if summary is None:
            return False

        key = (data.message_id, data.attachment_id)
        ids = summary.attachment_ids
        count = summary.attachment_count
        if isinstance(event, AttachmentAdded):
            if data.attachment_id in ids or key in self._removed_attachments:
                return False
            ids = ids | {data.attachment_id}
            count += 1
        else:
            if key in self._removed_attachments:
                return False
            self._removed_attachments.add(key)
            if data.attachment_id in ids:
                ids = ids - {data.attachment_id}
            count = max(0, count - 1)
            if count == summary.attachment_count and ids == summary.attachment_ids:
                return False

        self._replace(dataclasses.replace(
            summary, attachment_ids=ids, attachment_count=count, has_attachments=count > 0,
        ))
        return self._bump()

    def _on_link(self, event: LinkAdded | LinkRemoved) -> bool:
        data = event.data
        summary = self._find(data.message_id)
        if summary is None:
            return False
        if isinstance(event, LinkAdded):
            if data.link_id in summary.link_ids:
                return False
            ids = summary.link_ids | {data.link_id}
        else:
            if data.link_id not in summary.link_ids:
                return False
            ids = summary.link_ids - {data.link_id}
        self._replace(dataclasses.replace(summary, link_ids=ids))
        return self._bump()
