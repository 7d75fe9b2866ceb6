"""API schema package."""

from docflow.api.schemas.execution import (
    AsyncExecutionResponse,
    ExecutionDetailResponse,
    ExecutionListResponse,
    ExecutionSummary,
    StepLogResponse,
)

__all__ = [
    "AsyncExecutionResponse",
    "ExecutionDetailResponse",
    "ExecutionListResponse",
    "ExecutionSummary",
    "StepLogResponse",
]
