"""Celery application: RabbitMQ broker, no result backend.

Carries post-commit discussion events to background workers.
"""
from __future__ import annotations

import logging

from celery import Celery, signals
from kombu import Exchange, Queue

from discussions.config import settings
from discussions.logging_config import setup_logging

celery = Celery(
    "discussions",
    broker=settings.CELERY_BROKER_URL,
)

# ── Serialisation ──
celery.conf.accept_content = ["json"]
celery.conf.task_serializer = "json"
celery.conf.timezone = "UTC"
celery.conf.enable_utc = True

# ── Results ──
# Tasks report through logs and metrics; nothing reads their return values.
celery.conf.task_ignore_result = True

# ── Reliability ──
celery.conf.task_acks_late = True
celery.conf.worker_prefetch_multiplier = 1
celery.conf.task_reject_on_worker_lost = True

# ── Exchanges & Queues ──
default_exchange = Exchange("discussions", type="direct")

celery.conf.task_queues = (
    Queue("discussion_events", default_exchange, routing_key="discussion_events"),
    Queue("dead_letter", default_exchange, routing_key="dead_letter"),
)

celery.conf.task_default_queue = "discussion_events"
celery.conf.task_default_exchange = "discussions"
celery.conf.task_default_routing_key = "discussion_events"

# ── Task routes ──
celery.conf.task_routes = {
    "discussions.workers.merged.run_discussion_merged": {"queue": "discussion_events"},
}

# ── Task modules ──
celery.conf.include = ["discussions.workers.merged"]


@signals.setup_logging.connect
def _configure_worker_logging(loglevel=None, **kwargs) -> None:
    setup_logging(logging.getLevelName(loglevel) if isinstance(loglevel, int) else loglevel)
