"""
@file: celery_app.py
@description:
This module initializes and configures the Celery application for background task
processing and scheduled job execution.

@dependencies:
- celery: For asynchronous task processing
- chunkvault.core.config: For application configuration settings

@notes:
- Redis is used as both the broker and result backend
- The beat schedule runs storage reconciliation every RECONCILE_INTERVAL_MINUTES
"""

import os
from datetime import timedelta

from celery import Celery

from chunkvault.core.config import settings

# Initialize Celery app
celery_app = Celery(
    "chunkvault",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["chunkvault.workers.tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
)

celery_app.conf.task_routes = {
    "chunkvault.workers.tasks.reconcile_storage": {"queue": "maintenance"},
}

# Configure Celery Beat scheduler for periodic tasks
celery_app.conf.beat_schedule = {
    "reconcile-chunk-storage": {
        "task": "chunkvault.workers.tasks.reconcile_storage",
        "schedule": timedelta(minutes=settings.RECONCILE_INTERVAL_MINUTES),
        "args": (),
    },
}

# Run tasks in-process under pytest
if os.environ.get("TESTING"):
    celery_app.conf.update(task_always_eager=True)
