from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from harbor_realtime.domain.entities.message import Message, MessageSummary
from harbor_realtime.domain.value_objects.enums import MessageType
from harbor_realtime.infrastructure.db.mappers import message as mapper
from harbor_realtime.infrastructure.db.models.message import MessageModel, MessageRecipientModel


def _unread_clause(recipient_email: str, tenant_id: str) -> tuple:
    return (
        MessageRecipientModel.recipient_email == recipient_email,
        MessageRecipientModel.is_read.is_(False),
        MessageRecipientModel.is_deleted.is_(False),
        MessageModel.tenant_id == tenant_id,
        MessageModel.is_deleted.is_(False),
        MessageModel.message_type == MessageType.SUBSCRIBER.value,
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: int) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        if model is None or model.is_deleted:
            return None
        return mapper.model_to_entity(model)

    async def count_unread(self, recipient_email: str, tenant_id: str) -> int:
        stmt = (
            select(func.count(func.distinct(MessageModel.id)))
            .select_from(MessageModel)
            .join(MessageRecipientModel, MessageRecipientModel.message_id == MessageModel.id)
            .where(*_unread_clause(recipient_email, tenant_id))
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def recent_unread(
        self,
        recipient_email: str,
        tenant_id: str,
        *,
        limit: int = 3,
    ) -> list[MessageSummary]:
        stmt = (
            select(MessageModel)
            .join(MessageRecipientModel, MessageRecipientModel.message_id == MessageModel.id)
            .where(*_unread_clause(recipient_email, tenant_id))
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_summary(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        model = MessageModel(
            tenant_id=tenant_id,
            sender_email=sender_email,
            subject=subject,
            body=body,
            message_type=message_type,
            created_at=created_at,
            recipients=[
                MessageRecipientModel(recipient_email=email) for email in dict.fromkeys(recipients)
            ],
        )
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, message_id: int, recipient_email: str, read_at: datetime) -> bool:
        stmt = (
            update(MessageRecipientModel)
            .where(
                MessageRecipientModel.message_id == message_id,
                MessageRecipientModel.recipient_email == recipient_email,
                MessageRecipientModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def soft_delete(self, message_id: int) -> None:
        await self._session.execute(
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(is_deleted=True)
        )
