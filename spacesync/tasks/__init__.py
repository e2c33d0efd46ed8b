"""
Background tasks for SpaceSync.
"""

# Ensure Celery registers task modules on worker startup.
from spacesync.tasks import migration_tasks  # noqa: F401
