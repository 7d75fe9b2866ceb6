"""
Workflow execution endpoints: run now, or queue for a Celery worker.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from docflow.api.deps import get_workflow_engine
from docflow.api.schemas.execution import AsyncExecutionResponse
from docflow.core.logging import get_logger
from docflow.pipeline.engine import WorkflowEngine
from docflow.pipeline.request import WorkflowRunRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


def _bad_request(error: str, details: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": error, "details": details},
    )


async def _parse_payload(request: Request) -> tuple[dict[str, Any] | None, WorkflowRunRequest | JSONResponse]:
    """Return (raw payload, parsed request) or (None, 400 response)."""
    try:
        payload = await request.json()
    except ValueError as exc:
        return None, _bad_request("Invalid JSON body", str(exc))
    if not isinstance(payload, dict):
        return None, _bad_request("Invalid request payload", "Body must be a JSON object")
    try:
        return payload, WorkflowRunRequest.model_validate(payload)
    except ValidationError as exc:
        return None, _bad_request(
            "Invalid request payload",
            jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        )


# ─── Execute (synchronous) ────────────────────────────────
@router.post("/execute")
async def execute_workflow(
    request: Request,
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """
    Run a workflow to completion and return its result envelope.

    200 with ``success: true`` when every step completed or was skipped,
    500 with the failure envelope when a step (or loading) failed.
    """
    payload, parsed = await _parse_payload(request)
    if payload is None:
        return parsed

    result = await engine.run(parsed)
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=jsonable_encoder(result.to_response()),
    )


# ─── Execute (queued) ─────────────────────────────────────
@router.post("/execute/async", status_code=status.HTTP_202_ACCEPTED, response_model=AsyncExecutionResponse)
async def queue_workflow(request: Request):
    """Validate the payload and hand the run to a Celery worker."""
    from docflow.tasks.workflow_tasks import execute_workflow as execute_task

    payload, parsed = await _parse_payload(request)
    if payload is None:
        return parsed

    task = execute_task.delay(payload)
    logger.info("Workflow queued", workflow_id=parsed.workflow_id, celery_task_id=task.id)
    return AsyncExecutionResponse(workflow_id=parsed.workflow_id, celery_task_id=task.id)
