"""Notification transports.

``NotificationTransport.send`` may raise; the dispatcher is the layer
that turns delivery failures into log lines.

- ``EmailSmsTransport`` sends email through Django's mail framework and
  SMS through ``LoggingSmsSender`` (a log-only sender, no SMS provider
  is wired in).
- ``CeleryNotificationTransport`` defers delivery to the
  ``notifications.deliver`` task.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Any, Mapping

import structlog
from django.conf import settings
from django.core.mail import send_mail
from django.core.serializers.json import DjangoJSONEncoder

from marketplace.notifications.messages import Recipient, render

logger = structlog.get_logger(__name__)


class NotificationTransport(ABC):
    @abstractmethod
    def send(self, kind: str, recipient: Recipient, payload: Mapping[str, Any]) -> None:
        """Deliver one notification."""


class LoggingSmsSender:
    """Records outgoing SMS in the log instead of calling a provider."""

    def send(self, phone: str, text: str) -> None:
        logger.info("notification.sms_sent", phone=_mask_phone(phone), text=text)


class EmailSmsTransport(NotificationTransport):
    def __init__(self, sms_sender: LoggingSmsSender | None = None) -> None:
        self.sms_sender = sms_sender or LoggingSmsSender()

    def send(self, kind: str, recipient: Recipient, payload: Mapping[str, Any]) -> None:
        message = render(kind, recipient, payload)
        if recipient.email:
            send_mail(
                message.subject,
                message.body,
                settings.DEFAULT_FROM_EMAIL,
                [recipient.email],
            )
            logger.info("notification.email_sent", kind=kind, subject=message.subject)
        if recipient.phone:
            self.sms_sender.send(recipient.phone, message.sms)


class CeleryNotificationTransport(NotificationTransport):
    def send(self, kind: str, recipient: Recipient, payload: Mapping[str, Any]) -> None:
        from marketplace.notifications.tasks import deliver_notification

        deliver_notification.delay(
            kind,
            asdict(recipient),
            json.loads(json.dumps(dict(payload), cls=DjangoJSONEncoder)),
        )


def _mask_phone(phone: str) -> str:
    return f"{'*' * max(len(phone) - 4, 0)}{phone[-4:]}"
