"""Payment domain constants."""

from django.db import models


class PaymentStatus(models.TextChoices):
    CREATED = "created", "Created"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


# A payment in one of these states can still be (re)verified.
VERIFIABLE_STATES: set[str] = {PaymentStatus.CREATED, PaymentStatus.FAILED}

# A payment in one of these states accepts refunds.
REFUNDABLE_STATES: set[str] = {PaymentStatus.COMPLETED}
