"""
Celery tasks: queued workflow runs.

Each task runs the async WorkflowEngine with asyncio.run() on a fresh DB
engine, since the worker has no long-lived event loop to share a pool with.
"""

import asyncio
from typing import Any

import structlog

from docflow.db.session import make_session_factory
from docflow.pipeline.request import WorkflowRunRequest
from docflow.pipeline.wiring import build_engine
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.workflows")


async def _run(payload: dict[str, Any]) -> dict[str, Any]:
    session_factory, db_engine = make_session_factory()
    try:
        engine = build_engine(session_factory)
        result = await engine.run(WorkflowRunRequest.model_validate(payload))
        return result.to_response()
    finally:
        await db_engine.dispose()


@celery_app.task(bind=True, name="docflow.tasks.workflow_tasks.execute_workflow", max_retries=0)
def execute_workflow(self, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Run one workflow invocation payload to completion.

    Returns the same envelope as POST /workflows/execute.  A failed run is a
    normal result (``success: false``), not a task failure; only crashes
    outside the engine propagate to Celery.
    """
    task_log = logger.bind(task_id=self.request.id, workflow_id=payload.get("workflowId"))
    task_log.info("Workflow task started")

    try:
        response = asyncio.run(_run(payload))
    except Exception as exc:
        task_log.exception("Workflow task crashed", error=str(exc))
        raise

    task_log.info(
        "Workflow task finished",
        success=response.get("success"),
        execution_log_id=response.get("workflowExecutionLogId"),
    )
    return response
