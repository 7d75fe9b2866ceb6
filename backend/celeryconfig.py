"""
Celery configuration for docflow workers.

Loaded by `celery_app.config_from_object("celeryconfig")` in docflow/tasks/__init__.py.
All broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization: JSON only (no pickle)
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Acknowledge tasks AFTER they complete
task_acks_late = True
task_reject_on_worker_lost = True

# Only prefetch 1 task at a time per worker process
worker_prefetch_multiplier = 1

# Workflows call external APIs and SFTP servers
task_soft_time_limit = 1800   # 30 min: raises SoftTimeLimitExceeded
task_time_limit = 1860        # 31 min: hard kill

# ═══════════════════════════════════════════════════════════
#  Result Expiry: auto-clean after 24h
# ═══════════════════════════════════════════════════════════

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

worker_max_tasks_per_child = 50

# Disable events by default (reduces Redis load)
# Enable with: celery -A docflow.tasks worker -E
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run a dedicated worker for workflow runs:
#   celery -A docflow.tasks worker -Q workflows

task_routes = {
    "docflow.tasks.workflow_tasks.*": {"queue": "workflows"},
}

task_default_queue = "default"
