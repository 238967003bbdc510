"""Realtime order updates.

Each order has a room (``order_<id>``); subscribers receive an
``order_status_update`` message on every status change.  Sellers have a
``seller_inventory_<id>`` room for ``low_stock_alert`` messages.

``RedisRealtimeChannel`` publishes on Redis pub/sub (the websocket
gateway subscribes to the same channels); ``InMemoryRealtimeChannel``
keeps messages in memory for tests and local development.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Mapping

import structlog
from django.core.serializers.json import DjangoJSONEncoder
from django_redis import get_redis_connection

logger = structlog.get_logger(__name__)

ORDER_STATUS_EVENT = "order_status_update"
LOW_STOCK_EVENT = "low_stock_alert"


def order_room(order_id: Any) -> str:
    return f"order_{order_id}"


def seller_inventory_room(seller_id: Any) -> str:
    return f"seller_inventory_{seller_id}"


class RealtimeChannel(ABC):
    @abstractmethod
    def publish_to_room(self, room: str, event: str, payload: Mapping[str, Any]) -> None:
        """Publish one message to every subscriber of *room*."""

    def publish(self, order_id: Any, payload: Mapping[str, Any]) -> None:
        self.publish_to_room(order_room(order_id), ORDER_STATUS_EVENT, payload)


class RedisRealtimeChannel(RealtimeChannel):
    def __init__(self, alias: str = "default") -> None:
        self.alias = alias

    def publish_to_room(self, room: str, event: str, payload: Mapping[str, Any]) -> None:
        message = json.dumps({"event": event, "data": dict(payload)}, cls=DjangoJSONEncoder)
        receivers = get_redis_connection(self.alias).publish(room, message)
        logger.debug("realtime.published", room=room, event=event, receivers=receivers)


class InMemoryRealtimeChannel(RealtimeChannel):
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, dict]] = []

    def publish_to_room(self, room: str, event: str, payload: Mapping[str, Any]) -> None:
        self.messages.append((room, event, dict(payload)))

    def messages_for(self, room: str) -> list[dict]:
        return [payload for r, _, payload in self.messages if r == room]
