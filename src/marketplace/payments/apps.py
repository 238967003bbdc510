from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "marketplace.payments"
    label = "payments"

    def ready(self) -> None:
        from marketplace.payments.events import PaymentCompleted, PaymentRefunded
        from marketplace.payments.handlers import (
            payment_completed_handler,
            payment_refunded_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(PaymentCompleted, payment_completed_handler)
        event_bus.subscribe(PaymentRefunded, payment_refunded_handler)
