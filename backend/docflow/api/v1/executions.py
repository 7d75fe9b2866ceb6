"""
Execution log endpoints: run list and run detail with step logs.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docflow.api.deps import get_db
from docflow.api.schemas.execution import (
    ExecutionDetailResponse,
    ExecutionListResponse,
    ExecutionSummary,
    StepLogResponse,
)
from docflow.repositories import execution_logs as log_repo

router = APIRouter(prefix="/executions", tags=["Executions"])


# ─── List Runs ────────────────────────────────────────────
@router.get("", response_model=ExecutionListResponse)
async def list_executions(
    workflow_id: str | None = None,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List workflow runs, newest first."""
    runs = await log_repo.list_execution_logs(
        db, workflow_id=workflow_id, status=status, offset=offset, limit=limit,
    )
    return ExecutionListResponse(
        data=[ExecutionSummary.model_validate(run) for run in runs],
        total=len(runs),
    )


# ─── Run Detail ───────────────────────────────────────────
@router.get("/{execution_log_id}", response_model=ExecutionDetailResponse)
async def get_execution(execution_log_id: str, db: AsyncSession = Depends(get_db)):
    """Run detail: status, context snapshot, and every step log."""
    run = await log_repo.get_execution_log(db, execution_log_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Workflow execution not found")

    detail = ExecutionDetailResponse.model_validate(run)
    detail.steps = [StepLogResponse.model_validate(step) for step in run.step_logs]
    return detail
