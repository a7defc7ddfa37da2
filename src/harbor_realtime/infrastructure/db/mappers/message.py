from __future__ import annotations

from harbor_realtime.domain.entities.message import Message, MessageSummary
from harbor_realtime.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        tenant_id=model.tenant_id,
        sender_email=model.sender_email,
        subject=model.subject,
        body=model.body,
        message_type=model.message_type,
        has_attachments=model.has_attachments,
        attachment_count=model.attachment_count,
        created_at=model.created_at,
        recipients=tuple(r.recipient_email for r in model.recipients if not r.is_deleted),
        is_deleted=model.is_deleted,
    )


def model_to_summary(model: MessageModel) -> MessageSummary:
    return MessageSummary(
        id=model.id,
        subject=model.subject,
        sender_email=model.sender_email,
        sender_name=None,
        created_at=model.created_at.isoformat(),
        has_attachments=model.has_attachments,
        attachment_count=model.attachment_count,
    )
