from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def isoformat_now(clock: Clock | None = None) -> str:
    """UTC timestamp in the ISO-8601 form carried by stream events."""
    return (clock or SystemClock()).now().isoformat()
