from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace.orders"
    label = "orders"

    def ready(self) -> None:
        from marketplace.orders.events import (
            OrderCancelled,
            OrderPlaced,
            OrderStatusChanged,
        )
        from marketplace.orders.handlers import (
            order_cancelled_handler,
            order_placed_handler,
            order_status_changed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderPlaced, order_placed_handler)
        event_bus.subscribe(OrderCancelled, order_cancelled_handler)
        event_bus.subscribe(OrderStatusChanged, order_status_changed_handler)
