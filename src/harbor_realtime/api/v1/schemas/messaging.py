from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from harbor_realtime.application.dto.snapshot import UnreadSnapshot
from harbor_realtime.domain.entities.message import MessageSummary


class RecentMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="Id")
    subject: str = Field(alias="Subject")
    sender_email: str = Field(alias="SenderEmail")
    sender_name: str | None = Field(default=None, alias="SenderName")
    created_at: str = Field(alias="CreatedAt")
    has_attachments: bool = Field(default=False, alias="HasAttachments")
    attachment_count: int = Field(default=0, alias="AttachmentCount")

    @classmethod
    def from_summary(cls, summary: MessageSummary) -> RecentMessageResponse:
        return cls(
            id=summary.id,
            subject=summary.subject,
            sender_email=summary.sender_email,
            sender_name=summary.sender_name,
            created_at=summary.created_at,
            has_attachments=summary.has_attachments,
            attachment_count=summary.attachment_count,
        )


class UnreadSnapshotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unread_count: int = Field(alias="unreadCount")
    tenant_id: str = Field(alias="tenantId")
    tenant_name: str = Field(alias="tenantName")
    recent_unread_messages: list[RecentMessageResponse] = Field(alias="recentUnreadMessages")
    timestamp: str

    @classmethod
    def from_snapshot(cls, snapshot: UnreadSnapshot) -> UnreadSnapshotResponse:
        return cls(
            unread_count=snapshot.unread_count,
            tenant_id=snapshot.tenant_id,
            tenant_name=snapshot.tenant_name,
            recent_unread_messages=[
                RecentMessageResponse.from_summary(s) for s in snapshot.recent_unread_messages
            ],
            timestamp=snapshot.timestamp,
        )


class TenantResponse(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(alias="tenantId")
    subject: str
    body: str = ""
    recipients: list[str] = Field(min_length=1)


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    tenant_id: str = Field(alias="tenantId")
    sender_email: str = Field(alias="senderEmail")
    subject: str
    recipients: list[str]
    created_at: datetime = Field(alias="createdAt")


class MarkReadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int = Field(alias="messageId")
    changed: bool
