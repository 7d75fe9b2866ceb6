"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("docflow")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "docflow.tasks.workflow_tasks",
])
