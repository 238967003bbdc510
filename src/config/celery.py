"""
Celery app for the marketplace: outbox relay and notification delivery.

``DJANGO_SETTINGS_MODULE`` is set before the app is instantiated so
Celery reads the Django settings (``CELERY_`` prefix).
"""

import logging.config
import os

import structlog
from celery import Celery
from celery.signals import setup_logging, task_postrun, task_prerun

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("marketplace")

app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()


@setup_logging.connect
def configure_worker_logging(**kwargs):
    # Keep Django's structlog JSON formatter instead of Celery's root handler
    from django.conf import settings

    logging.config.dictConfig(settings.LOGGING)


@task_prerun.connect
def bind_task_context(task_id=None, task=None, **kwargs):
    structlog.contextvars.bind_contextvars(task_id=task_id, task_name=task.name)


@task_postrun.connect
def unbind_task_context(**kwargs):
    structlog.contextvars.unbind_contextvars("task_id", "task_name")
