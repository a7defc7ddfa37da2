from __future__ import annotations

from typing import Protocol

from harbor_realtime.domain.entities.tenant import Tenant


class TenantReader(Protocol):
    async def primary_for_user(self, email: str) -> Tenant | None: ...

    async def list_for_user(self, email: str) -> list[Tenant]: ...

    async def is_member(self, email: str, tenant_id: str) -> bool: ...
