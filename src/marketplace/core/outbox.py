"""Writing aggregate domain events to the transactional outbox."""

from __future__ import annotations

import structlog

from marketplace.core.models import OutboxEvent
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


def flush_domain_events(entity: DomainEventMixin, topic: str) -> int:
    """Persist the entity's pending events as ``OutboxEvent`` rows.

    Must run inside the transaction that saved the entity.  Returns the
    number of events written.
    """
    events = entity.pull_domain_events()
    OutboxEvent.objects.bulk_create(
        [
            OutboxEvent(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic=topic,
            )
            for event in events
        ]
    )
    if events:
        logger.debug(
            "outbox.events_written",
            topic=topic,
            event_types=[event.event_name for event in events],
        )
    return len(events)
