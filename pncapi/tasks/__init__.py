"""TASKS MODULE"""

# Import tasks to ensure they are registered with Celery
from pncapi.tasks import notifications  # noqa: F401
