"""
Deferred job scheduling.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from celery import Celery

from spacesync.core.logging_config import log_debug, log_info


class DeferredJobScheduler(Protocol):
    def schedule(self, job_name: str, payload: Mapping[str, Any], not_before: datetime, group: str) -> None:
        ...


class CeleryJobScheduler:
    """Sends jobs to Celery by task name with an ETA and a target queue."""

    def __init__(self, app: Optional[Celery] = None):
        if app is None:
            from spacesync.core.celery_app import celery_app
            app = celery_app
        self.app = app

    def schedule(self, job_name: str, payload: Mapping[str, Any], not_before: datetime, group: str) -> None:
        result = self.app.send_task(job_name, kwargs=dict(payload), eta=not_before, queue=group)
        log_debug(
            "Scheduled deferred job",
            job=job_name,
            task_id=getattr(result, "id", None),
            eta=not_before.isoformat(),
            queue=group,
        )


class InlineJobScheduler:
    """Runs jobs immediately in the calling process, ignoring ``not_before``."""

    def __init__(self, handlers: Dict[str, Callable[..., Any]]):
        self.handlers = handlers

    def schedule(self, job_name: str, payload: Mapping[str, Any], not_before: datetime, group: str) -> None:
        handler = self.handlers.get(job_name)
        if handler is None:
            raise KeyError(f"No inline handler registered for {job_name}")
        log_info("Running job inline", job=job_name, index=payload.get("index"))
        handler(**payload)
