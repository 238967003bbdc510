"""Asynchronous notification delivery."""

from __future__ import annotations

import structlog
from celery import shared_task

from marketplace.notifications.messages import Recipient
from marketplace.notifications.transports import EmailSmsTransport

logger = structlog.get_logger(__name__)


@shared_task(
    name="notifications.deliver",
    autoretry_for=(OSError,),
    retry_backoff=True,
    max_retries=3,
)
def deliver_notification(kind: str, recipient: dict, payload: dict) -> None:
    """Send one notification; SMTP/network errors are retried with backoff."""
    EmailSmsTransport().send(kind, Recipient(**recipient), payload)
    logger.info("notification.delivered", kind=kind)
