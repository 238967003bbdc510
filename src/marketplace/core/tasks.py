"""Asynchronous tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.db import transaction

from marketplace.core.models import OutboxEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

MAX_RELAY_RETRIES = 5
RELAY_BATCH_SIZE = 100


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(batch_size: int = RELAY_BATCH_SIZE) -> dict:
    """Hand pending outbox events to the in-process event bus.

    Rows are locked with ``SKIP LOCKED`` so concurrent workers never
    relay the same event twice.  A handler failure marks only that row
    as failed; it is retried until ``MAX_RELAY_RETRIES``.
    """
    published = failed = 0
    with transaction.atomic():
        rows = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .relayable(MAX_RELAY_RETRIES)[:batch_size]
        )
        for row in rows:
            try:
                _publish(row)
            except Exception as exc:
                logger.warning(
                    "outbox.relay_failed",
                    outbox_id=str(row.id),
                    event_type=row.event_type,
                    error=str(exc),
                )
                row.mark_as_failed(str(exc))
                failed += 1
            else:
                row.mark_as_published()
                published += 1

    logger.info("outbox.relayed", published=published, failed=failed)
    return {"published": published, "failed": failed}


def _publish(row: OutboxEvent) -> None:
    event_class = event_bus.event_class_for(row.event_type)
    if event_class is None:
        logger.info("outbox.no_subscribers", event_type=row.event_type)
        return

    event_bus.publish(event_class.from_payload(row.payload))
