"""Seed development data: one tenant, two subscribers and a few unread messages."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects.postgresql import insert

from harbor_realtime.domain.value_objects.enums import MessageType
from harbor_realtime.infrastructure.db.models import TenantModel, TenantUserModel
from harbor_realtime.infrastructure.db.session import open_uow
from harbor_realtime.log import configure_logging

logger = logging.getLogger(__name__)

TENANT_ID = "harbor-dev"
USERS = ("alice@harbor.dev", "bob@harbor.dev")


async def seed() -> None:
    async with open_uow() as uow:
        session = uow.session
        await session.execute(
            insert(TenantModel).values(id=TENANT_ID, name="Harbor Dev").on_conflict_do_nothing()
        )
        for email in USERS:
            await session.execute(
                insert(TenantUserModel).values(email=email, tenant_id=TENANT_ID).on_conflict_do_nothing()
            )

        now = datetime.now(timezone.utc)
        subjects = [
            "Welcome to Harbor",
            "Quarterly report",
            "Shipping schedule",
            "Re: Shipping schedule",
        ]
        for i, subject in enumerate(subjects):
            await uow.messages_w.create(
                tenant_id=TENANT_ID,
                sender_email=USERS[1],
                subject=subject,
                body=f"Sample message #{i + 1}",
                recipients=[USERS[0]],
                message_type=MessageType.SUBSCRIBER.value,
                created_at=now - timedelta(minutes=len(subjects) - i),
            )

        await uow.commit()
        logger.info("Seeded tenant %s with %d messages for %s", TENANT_ID, len(subjects), USERS[0])


def main() -> None:
    configure_logging()
    asyncio.run(seed())


if __name__ == "__main__":
    main()
