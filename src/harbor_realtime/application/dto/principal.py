from __future__ import annotations

from dataclasses import dataclass

from harbor_realtime.domain.value_objects.enums import Role


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from the bearer credential."""

    email: str
    role: Role = Role.SUBSCRIBER

    @property
    def is_subscriber(self) -> bool:
        return self.role == Role.SUBSCRIBER

    @property
    def principal_key(self) -> str:
        """Unique key for socket registries."""
        return self.email.lower()
