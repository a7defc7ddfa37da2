from __future__ import annotations

import jwt

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.domain.value_objects.enums import Role


def _role_from_claims(payload: dict) -> Role:
    role_raw = payload.get("role", Role.SUBSCRIBER.value)
    return Role(role_raw) if role_raw in Role.__members__.values() else Role.SUBSCRIBER


class HS256Verifier:
    """Verify session JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        email = payload.get("email") or payload["sub"]
        return Principal(email=str(email).strip().lower(), role=_role_from_claims(payload))
