"""Message commands.

Every command mutates rows and appends the matching stream event to the
outbox in the same transaction; the outbox worker fans it out afterwards.
"""
from __future__ import annotations

from harbor_realtime.application.dto.message import SendMessageDTO
from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from harbor_realtime.application.policies.permissions import assert_subscriber, assert_tenant_member
from harbor_realtime.application.ports.clock import Clock, SystemClock
from harbor_realtime.application.uow import UnitOfWork
from harbor_realtime.domain.entities.message import Message
from harbor_realtime.domain.value_objects.enums import EventType, MessageType


async def send_message(
    principal: Principal,
    dto: SendMessageDTO,
    uow: UnitOfWork,
    clock: Clock | None = None,
) -> Message:
    assert_subscriber(principal)
    await assert_tenant_member(principal, dto.tenant_id, uow.tenants)

    recipients = [r.strip().lower() for r in dto.recipients if r.strip()]
    if not recipients:
        raise ValidationError("At least one recipient is required")
    if not dto.subject.strip():
        raise ValidationError("Subject is required")

    now = (clock or SystemClock()).now()
    msg = await uow.messages_w.create(
        tenant_id=dto.tenant_id,
        sender_email=principal.email,
        subject=dto.subject.strip(),
        body=dto.body,
        recipients=recipients,
        message_type=MessageType.SUBSCRIBER.value,
        created_at=now,
    )
    await uow.outbox.add(
        EventType.MESSAGE_NEW.value,
        msg.tenant_id,
        {
            "messageId": msg.id,
            "tenantId": msg.tenant_id,
            "senderEmail": msg.sender_email,
            "recipients": list(msg.recipients),
            "subject": msg.subject,
            "body": msg.body,
            "hasAttachments": msg.has_attachments,
            "attachmentCount": msg.attachment_count,
            "timestamp": msg.created_at.isoformat(),
        },
    )
    await uow.commit()
    return msg


async def mark_read(
    message_id: int,
    principal: Principal,
    uow: UnitOfWork,
    clock: Clock | None = None,
) -> bool:
    """Mark the caller's copy as read. Returns False when it was already read."""
    msg = await uow.messages.get_by_id(message_id)
    if msg is None:
        raise NotFoundError("Message not found")
    if principal.email not in msg.recipients:
        raise ForbiddenError("Not a recipient of this message")

    now = (clock or SystemClock()).now()
    changed = await uow.messages_w.mark_read(message_id, principal.email, now)
    if not changed:
        return False

    await uow.outbox.add(
        EventType.MESSAGE_READ.value,
        msg.tenant_id,
        {
            "messageId": msg.id,
            "tenantId": msg.tenant_id,
            "readBy": principal.email,
            "readAt": now.isoformat(),
            "timestamp": now.isoformat(),
        },
    )
    await uow.commit()
    return True


async def delete_message(
    message_id: int,
    principal: Principal,
    uow: UnitOfWork,
    clock: Clock | None = None,
) -> None:
    msg = await uow.messages.get_by_id(message_id)
    if msg is None:
        raise NotFoundError("Message not found")
    if msg.sender_email != principal.email:
        raise ForbiddenError("Only the sender can delete this message")

    now = (clock or SystemClock()).now()
    await uow.messages_w.soft_delete(message_id)
    await uow.outbox.add(
        EventType.MESSAGE_DELETE.value,
        msg.tenant_id,
        {
            "messageId": msg.id,
            "tenantId": msg.tenant_id,
            "deletedBy": principal.email,
            "timestamp": now.isoformat(),
        },
    )
    await uow.commit()
