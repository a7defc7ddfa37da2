from __future__ import annotations

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.domain.value_objects.enums import Role


class IdentityVerifier:
    """Trust the bearer value as the caller's email.

    Only safe behind a gateway that has already authenticated the session and
    rewrites the header to ``Bearer {email}``.
    """

    async def verify(self, token: str) -> Principal:
        email = token.strip().lower()
        if not email or "@" not in email:
            raise ValueError("Bearer identity must be an email address")
        return Principal(email=email, role=Role.SUBSCRIBER)
