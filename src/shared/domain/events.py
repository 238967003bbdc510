"""Domain event primitives shared by the orders and payments apps.

Events are frozen dataclasses.  They travel through the transactional
outbox as JSON, so every event knows how to flatten itself into a
JSON-safe payload and how to rebuild itself from one.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Type, TypeVar, get_type_hints
from uuid import UUID, uuid4

E = TypeVar("E", bound="DomainEvent")

# Types stored as strings in the payload and rebuilt on the way back.
_COERCERS = {
    UUID: UUID,
    Decimal: Decimal,
    datetime: datetime.fromisoformat,
}


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    Subclasses declare their payload as keyword-only fields so they can
    follow the defaulted envelope fields declared here.
    """

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_payload(self) -> Dict[str, Any]:
        return {key: _to_json(value) for key, value in asdict(self).items()}

    @classmethod
    def from_payload(cls: Type[E], payload: Dict[str, Any]) -> E:
        hints = get_type_hints(cls)
        kwargs = {}
        for f in fields(cls):
            if not f.init or f.name not in payload:
                continue
            value = payload[f.name]
            coerce = _COERCERS.get(hints.get(f.name))
            kwargs[f.name] = coerce(value) if coerce and value is not None else value
        return cls(**kwargs)


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    return value


class DomainEventMixin:
    """Lets an aggregate collect events until its repository saves it."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        self._pending().append(event)

    def clear_domain_events(self) -> None:
        self._pending().clear()

    def pull_domain_events(self) -> list[DomainEvent]:
        """Return the pending events and forget them."""
        events = list(self._pending())
        self.clear_domain_events()
        return events

    @property
    def domain_events(self) -> list[DomainEvent]:
        return list(self._pending())

    def _pending(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return self._domain_events
