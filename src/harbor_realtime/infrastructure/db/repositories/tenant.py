from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from harbor_realtime.domain.entities.tenant import Tenant
from harbor_realtime.infrastructure.db.models.tenant import TenantModel, TenantUserModel


class TenantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, email: str) -> list[Tenant]:
        stmt = (
            select(TenantModel)
            .join(TenantUserModel, TenantUserModel.tenant_id == TenantModel.id)
            .where(TenantUserModel.email == email)
            .order_by(TenantUserModel.created_at.asc(), TenantModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [Tenant(id=t.id, name=t.name or t.id) for t in result.scalars().all()]

    async def primary_for_user(self, email: str) -> Tenant | None:
        tenants = await self.list_for_user(email)
        return tenants[0] if tenants else None

    async def is_member(self, email: str, tenant_id: str) -> bool:
        stmt = select(TenantUserModel.tenant_id).where(
            TenantUserModel.email == email,
            TenantUserModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.first() is not None
