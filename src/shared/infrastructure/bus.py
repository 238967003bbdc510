"""In-process event bus fed by the outbox relay."""

from __future__ import annotations

from typing import Dict, List, Optional, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Routes events to handlers by concrete class.

    Handlers run synchronously in subscription order.  The first handler
    error stops dispatch and is re-raised so the relay can mark the
    outbox row failed and retry it.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}
        self._classes: Dict[str, Type[DomainEvent]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)
        self._classes[event_class.__name__] = event_class

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            logger.debug(
                "event_bus.dispatch",
                event_name=event.event_name,
                handler=type(handler).__name__,
            )
            handler.handle(event)

    def event_class_for(self, event_name: str) -> Optional[Type[DomainEvent]]:
        return self._classes.get(event_name)


event_bus = InMemoryEventBus()
