from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    SUBSCRIBER = "subscriber"
    TENANT_ADMIN = "tenant_admin"
    ADMIN = "admin"


class MessageType(StrEnum):
    SUBSCRIBER = "subscriber"
    SYSTEM = "system"


class EntityType(StrEnum):
    WORKFLOW = "workflow"
    NOTIFICATIONS = "notifications"


class EventType(StrEnum):
    MESSAGE_NEW = "message:new"
    MESSAGE_READ = "message:read"
    MESSAGE_DELETE = "message:delete"
    MESSAGE_UPDATE = "message:update"
    ATTACHMENT_ADDED = "message:attachment:added"
    ATTACHMENT_REMOVED = "message:attachment:removed"
    LINK_ADDED = "message:link:added"
    LINK_REMOVED = "message:link:removed"
    CONNECTION_ESTABLISHED = "connection:established"
    UNREAD_UPDATE = "unread:update"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
