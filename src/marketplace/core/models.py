"""Shared model plumbing for every marketplace app.

- ``BaseModel``: UUIDv7 primary key plus ``created_at`` / ``updated_at``.
- ``SoftDeleteModel``: sellers, customers and products are retired by
  stamping ``deleted_at``; orders and payments are never deleted
  (cancellation and refund are terminal states instead).
- ``OutboxEvent``: order and payment events written in the same
  transaction as the change that produced them, relayed later by Celery.

``objects`` on soft-deletable models is unfiltered.  Lookups that feed
checkout must go through ``.alive()``.
"""

from __future__ import annotations

from typing import Dict

import uuid6
from django.db import models
from django.db.models import Count, Q
from django.utils import timezone


class BaseModel(models.Model):
    """Abstract base with a time-ordered UUIDv7 PK and timestamps."""

    id = models.UUIDField(primary_key=True, default=uuid6.uuid7, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        # auto_now fields are skipped when update_fields omits them
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Soft delete
# ---------------------------------------------------------------------------


class SoftDeleteQuerySet(models.QuerySet):
    def alive(self) -> SoftDeleteQuerySet:
        return self.filter(deleted_at__isnull=True)

    def dead(self) -> SoftDeleteQuerySet:
        return self.filter(deleted_at__isnull=False)

    def delete(self) -> tuple[int, dict[str, int]]:
        """Retire every live row in the queryset with one UPDATE."""
        now = timezone.now()
        retired = self.alive().update(deleted_at=now, updated_at=now)
        return retired, {self.model._meta.label: retired}


SoftDeleteManager = models.Manager.from_queryset(SoftDeleteQuerySet)


class SoftDeleteModel(BaseModel):
    """Abstract model retired through a single ``deleted_at`` timestamp.

    A retired product disappears from the catalog lookup and can no longer
    be sold, while order lines that already reference it stay intact.
    """

    deleted_at = models.DateTimeField(null=True, blank=True, default=None, db_index=True)

    objects = SoftDeleteManager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def delete(self, using=None, keep_parents=False) -> tuple[int, dict[str, int]]:
        if self.is_deleted:
            return 0, {}
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at"])
        return 1, {self._meta.label: 1}


# ---------------------------------------------------------------------------
# Transactional outbox
# ---------------------------------------------------------------------------


class EventStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PUBLISHED = "PUBLISHED", "Published"
    FAILED = "FAILED", "Failed"


class OutboxEventQuerySet(models.QuerySet):
    def relayable(self, max_retries: int) -> OutboxEventQuerySet:
        """Pending rows plus failed rows that still have retries left, oldest first."""
        return self.filter(
            Q(status=EventStatus.PENDING)
            | Q(status=EventStatus.FAILED, retry_count__lt=max_retries)
        ).order_by("created_at", "id")

    def backlog(self) -> Dict[str, int]:
        """Count of unrelayed rows, split into ``pending`` and ``failed``."""
        return self.aggregate(
            pending=Count("id", filter=Q(status=EventStatus.PENDING)),
            failed=Count("id", filter=Q(status=EventStatus.FAILED)),
        )


class OutboxEvent(BaseModel):
    """An order or payment event awaiting delivery to its subscribers.

    ``topic`` is the owning app (``orders`` or ``payments``).  The
    ``core.relay_outbox_events`` task moves rows from ``PENDING`` to
    ``PUBLISHED``; handler errors leave them ``FAILED`` with a growing
    ``retry_count``.
    """

    event_type = models.CharField(max_length=100)
    payload = models.JSONField()
    aggregate_id = models.CharField(max_length=255)
    topic = models.CharField(max_length=100)
    status = models.CharField(
        max_length=20, choices=EventStatus.choices, default=EventStatus.PENDING
    )
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    error_message = models.TextField(null=True, blank=True, default=None)  # noqa: DJ01
    retry_count = models.PositiveIntegerField(default=0)

    objects = OutboxEventQuerySet.as_manager()

    class Meta:
        db_table = "outbox_events"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["aggregate_id"], name="outbox_aggregate_id_idx"),
            models.Index(fields=["status", "created_at"], name="outbox_status_created_idx"),
        ]

    def mark_as_published(self) -> None:
        self.status = EventStatus.PUBLISHED
        self.processed_at = timezone.now()
        self.save(update_fields=["status", "processed_at"])

    def mark_as_failed(self, error: str) -> None:
        self.status = EventStatus.FAILED
        self.error_message = error
        self.retry_count += 1
        self.save(update_fields=["status", "error_message", "retry_count"])

    def __str__(self) -> str:
        return f"{self.event_type} [{self.status}] ({self.aggregate_id})"
