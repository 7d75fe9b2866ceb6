"""
ExecutionRecorder: writes the run log and step logs for one workflow run.

Every write is best-effort.  A log store outage is logged as a warning and
the run carries on; the engine's control flow never depends on a write
succeeding.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable

from docflow.core.constants import RunStatus, StepStatus
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import StepDefinition
from docflow.pipeline.interfaces import LogStore
from docflow.pipeline.templating import SINGLE_BRACE, render

logger = get_logger(__name__)


class ExecutionRecorder:
    """Run-level and step-level log writer bound to one run."""

    def __init__(self, log_store: LogStore, workflow_id: str) -> None:
        self.log_store = log_store
        self.workflow_id = workflow_id
        self.execution_log_id: str | None = None

    async def _safe(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except Exception as exc:
            logger.warning(
                "Execution log write failed (non-fatal)",
                operation=operation,
                workflow_id=self.workflow_id,
                execution_log_id=self.execution_log_id,
                error=str(exc),
            )
            return None

    # ─── Run level ─────────────────────────────────────

    async def record_extraction(self, values: dict[str, Any]) -> str | None:
        return await self._safe("create_extraction_log", self.log_store.create_extraction_log(values))

    async def start(self, extraction_log_id: str | None, ctx: WorkflowContext) -> str | None:
        self.execution_log_id = await self._safe(
            "create_execution_log",
            self.log_store.create_execution_log({
                "extraction_log_id": extraction_log_id,
                "workflow_id": self.workflow_id,
                "status": RunStatus.RUNNING,
                "context_data": ctx.snapshot(),
                "started_at": _utcnow(),
            }),
        )
        return self.execution_log_id

    async def _update(self, operation: str, values: dict[str, Any]) -> None:
        if self.execution_log_id is None:
            return
        values["updated_at"] = _utcnow()
        await self._safe(operation, self.log_store.update_execution_log(self.execution_log_id, values))

    async def step_started(self, definition: StepDefinition, ctx: WorkflowContext) -> None:
        await self._update("step_started", {
            "current_step_id": definition.id,
            "current_step_name": definition.name,
            "context_data": ctx.snapshot(),
        })

    async def checkpoint(self, ctx: WorkflowContext) -> None:
        await self._update("checkpoint", {"context_data": ctx.snapshot()})

    async def complete(self, ctx: WorkflowContext) -> None:
        await self._update("complete", {
            "status": RunStatus.COMPLETED,
            "context_data": ctx.snapshot(),
            "completed_at": _utcnow(),
        })

    async def fail(self, error_message: str, ctx: WorkflowContext) -> None:
        await self._update("fail", {
            "status": RunStatus.FAILED,
            "error_message": error_message,
            "context_data": ctx.snapshot(),
            "completed_at": _utcnow(),
        })

    # ─── Step level ────────────────────────────────────

    async def record_step(
        self,
        definition: StepDefinition,
        result: StepResult,
        ctx: WorkflowContext,
        input_data: dict[str, Any],
    ) -> None:
        if self.execution_log_id is None:
            return

        user_response = None
        if definition.user_response_template and result.status == StepStatus.COMPLETED:
            user_response = render(definition.user_response_template, ctx.get, pattern=SINGLE_BRACE).result

        await self._safe("create_step_log", self.log_store.create_step_log({
            "workflow_execution_log_id": self.execution_log_id,
            "workflow_id": self.workflow_id,
            "step_id": definition.id,
            "step_name": definition.name,
            "step_type": definition.type,
            "step_order": definition.order,
            "status": result.status,
            "started_at": result.started_at,
            "completed_at": result.completed_at,
            "duration_ms": result.duration_ms,
            "error_message": result.error,
            "input_data": input_data,
            "output_data": result.output,
            "user_response": user_response,
        }))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
