"""
Celery application configuration for deferred migration jobs.
"""
from celery import Celery

from spacesync.core.config import settings

# Create Celery app instance
celery_app = Celery(
    "spacesync",
    include=[
        "spacesync.tasks.migration_tasks",
    ],
)

# Configure Celery from settings
celery_app.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer=settings.celery_task_serializer,
    result_serializer=settings.celery_result_serializer,
    accept_content=settings.celery_accept_content,
    timezone=settings.celery_timezone,
    enable_utc=settings.celery_enable_utc,
    task_default_queue=settings.migration_queue,
    task_track_started=True,
    task_time_limit=settings.task_time_limit,
    task_soft_time_limit=max(settings.task_time_limit - 300, 60),
    worker_prefetch_multiplier=1,  # One chunk at a time
    worker_max_tasks_per_child=1000,
    task_acks_late=True,  # Acknowledge tasks after completion
    task_reject_on_worker_lost=True,  # Requeue chunks if worker dies
    broker_connection_retry_on_startup=True,
)
