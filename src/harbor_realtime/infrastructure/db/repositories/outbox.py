from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from harbor_realtime.application.repositories.outbox import OutboxRecord
from harbor_realtime.domain.value_objects.enums import OutboxStatus
from harbor_realtime.infrastructure.db.models.outbox import OutboxMessageModel

_DUE_STATUSES = (OutboxStatus.PENDING.value, OutboxStatus.FAILED.value)


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, tenant_id: str, data: dict[str, Any]) -> None:
        self._session.add(OutboxMessageModel(event_type=event_type, tenant_id=tenant_id, data=data))
        await self._session.flush()

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim up to ``batch_size`` due records; concurrent workers skip locked rows."""
        now = datetime.now(timezone.utc)
        result = await self._session.execute(
            select(OutboxMessageModel)
            .where(
                OutboxMessageModel.status.in_(_DUE_STATUSES),
                OutboxMessageModel.next_retry_at.is_(None) | (OutboxMessageModel.next_retry_at <= now),
            )
            .order_by(OutboxMessageModel.created_at.asc(), OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        rows = result.scalars().all()
        if not rows:
            return []

        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_([r.id for r in rows]))
            .values(status=OutboxStatus.PROCESSING.value)
        )
        await self._session.flush()
        return [
            OutboxRecord(id=r.id, event_type=r.event_type, tenant_id=r.tenant_id, data=r.data, attempts=r.attempts)
            for r in rows
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status=OutboxStatus.SENT.value, sent_at=func.now())
        )

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.FAILED.value,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )
