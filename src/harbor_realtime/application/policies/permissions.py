from __future__ import annotations

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.application.exceptions import ForbiddenError
from harbor_realtime.application.repositories.tenant import TenantReader


def assert_subscriber(principal: Principal) -> None:
    """Messaging surfaces are only open to subscribers."""
    if not principal.is_subscriber:
        raise ForbiddenError("Subscriber access required")


async def assert_tenant_member(
    principal: Principal,
    tenant_id: str,
    tenants: TenantReader,
) -> None:
    if not await tenants.is_member(principal.email, tenant_id):
        raise ForbiddenError("Access denied to this tenant")
