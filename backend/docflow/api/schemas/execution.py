"""Workflow execution request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AsyncExecutionResponse(BaseModel):
    """Returned when a run is queued on the workflows Celery queue."""

    message: str = "Workflow queued"
    workflow_id: str
    celery_task_id: str


class StepLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    step_id: str
    step_name: str
    step_type: str
    step_order: int
    status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error_message: str | None = None
    input_data: dict[str, Any] | None = None
    output_data: dict[str, Any] | None = None
    user_response: str | None = None


class ExecutionSummary(BaseModel):
    """One row of the run list."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str
    extraction_log_id: str | None = None
    status: str
    current_step_id: str | None = None
    current_step_name: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ExecutionListResponse(BaseModel):
    data: list[ExecutionSummary]
    total: int


class ExecutionDetailResponse(ExecutionSummary):
    """A run with its context snapshot and step logs in execution order."""

    context_data: dict[str, Any] | None = None
    updated_at: datetime | None = None
    steps: list[StepLogResponse] = []
