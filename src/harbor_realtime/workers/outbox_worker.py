"""Outbox worker: polls pending stream events and publishes them via Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from harbor_realtime.application.ports.bus import EventPublisher
from harbor_realtime.application.uow import UnitOfWork
from harbor_realtime.config import settings
from harbor_realtime.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from harbor_realtime.infrastructure.db.session import open_uow
from harbor_realtime.log import configure_logging

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def _calc_backoff(attempts: int) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return datetime.now(timezone.utc) + timedelta(seconds=delay)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                async with open_uow() as uow:
                    await process_batch(uow, publisher)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


async def process_batch(
    uow: UnitOfWork,
    publisher: EventPublisher,
    *,
    channel: str | None = None,
    batch_size: int | None = None,
    max_attempts: int | None = None,
) -> int:
    """Publish one batch of pending records. Returns how many were sent."""
    channel = channel or settings.REDIS_PUBSUB_CHANNEL
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    batch = await uow.outbox.fetch_pending(batch_size or settings.OUTBOX_BATCH_SIZE)
    if not batch:
        return 0

    sent_ids: list[int] = []
    for record in batch:
        if record.attempts >= max_attempts:
            logger.warning("Outbox record %d exceeded max attempts, skipping", record.id)
            continue
        try:
            await publisher.publish(channel, record.to_envelope())
            sent_ids.append(record.id)
        except Exception:
            logger.exception("Failed to publish outbox record %d (%s)", record.id, record.event_type)
            await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts))

    if sent_ids:
        await uow.outbox.mark_sent(sent_ids)

    await uow.commit()
    if sent_ids:
        logger.info("Published %d outbox records", len(sent_ids))
    return len(sent_ids)


def main() -> None:
    configure_logging()
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
