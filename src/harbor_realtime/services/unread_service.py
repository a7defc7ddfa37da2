from __future__ import annotations

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.application.dto.snapshot import UnreadSnapshot
from harbor_realtime.application.exceptions import NotFoundError
from harbor_realtime.application.policies.permissions import assert_subscriber
from harbor_realtime.application.ports.clock import Clock, isoformat_now
from harbor_realtime.application.uow import UnitOfWork
from harbor_realtime.domain.entities.tenant import Tenant


async def get_snapshot(
    principal: Principal,
    uow: UnitOfWork,
    *,
    recent_limit: int = 3,
    clock: Clock | None = None,
) -> UnreadSnapshot:
    """Authoritative unread count plus newest unread previews for the caller's tenant."""
    assert_subscriber(principal)

    tenant = await uow.tenants.primary_for_user(principal.email)
    if tenant is None:
        raise NotFoundError("No tenant found")

    count = await uow.messages.count_unread(principal.email, tenant.id)
    recent = await uow.messages.recent_unread(principal.email, tenant.id, limit=recent_limit)
    return UnreadSnapshot(
        unread_count=count,
        tenant_id=tenant.id,
        tenant_name=tenant.name or tenant.id,
        timestamp=isoformat_now(clock),
        recent_unread_messages=recent,
    )


async def count_unread(email: str, tenant_id: str, uow: UnitOfWork) -> int:
    return await uow.messages.count_unread(email, tenant_id)


async def list_user_tenants(principal: Principal, uow: UnitOfWork) -> list[Tenant]:
    return await uow.tenants.list_for_user(principal.email)
