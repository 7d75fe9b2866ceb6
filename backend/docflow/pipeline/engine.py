"""
WorkflowEngine: the orchestrator that runs a workflow's steps in order.

Responsibilities:
    - Load the document type, the extracted data and the step definitions
    - Seed the WorkflowContext
    - Evaluate skip/run guards, execute each step, follow branches
    - Write the execution log and one step log per step (best-effort)
    - Stop at the first failing step and return a WorkflowRunResult
    - Send the extraction type's success or failure notification (best-effort)
"""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from docflow.core.config import settings
from docflow.core.constants import DocumentKind, FormatType, NotificationType, StepStatus
from docflow.pipeline.branching import next_index, skip_reason
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import StepDefinition, load_definitions
from docflow.pipeline.dispatcher import StepDispatcher
from docflow.pipeline.errors import StepLimitExceededError, StorageError, WorkflowError
from docflow.pipeline.interfaces import BlobStore, DefinitionStore, DocumentType, LogStore, StepServices
from docflow.pipeline.notifications import RunNotifier
from docflow.pipeline.recorder import ExecutionRecorder
from docflow.pipeline.request import WorkflowRunRequest

FAILURE_MESSAGE = "Workflow execution failed"
SUCCESS_MESSAGE = "Workflow executed successfully"

# Run timestamps offered to templates are Pacific time, e.g. "03/15/2024, 2:30 AM".
TIMESTAMP_ZONE = ZoneInfo("America/Los_Angeles")


@dataclass
class WorkflowRunResult:
    """Final outcome of a workflow execution."""

    success: bool
    workflow_id: str
    execution_log_id: str | None = None
    extraction_log_id: str | None = None
    final_context: dict[str, Any] = field(default_factory=dict)
    last_api_response: Any = None
    output_filename: str | None = None
    error: str | None = None
    failed_step_id: str | None = None
    failed_step_name: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_duration_ms: int = 0
    steps_executed: int = 0
    step_results: list[dict[str, Any]] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        """The camelCase envelope returned to callers."""
        if self.success:
            return {
                "success": True,
                "message": SUCCESS_MESSAGE,
                "workflowExecutionLogId": self.execution_log_id,
                "extractionLogId": self.extraction_log_id,
                "finalContext": self.final_context,
                "lastApiResponse": self.last_api_response,
                "outputFilename": self.output_filename,
            }
        return {
            "success": False,
            "error": FAILURE_MESSAGE,
            "details": self.error,
            "workflowExecutionLogId": self.execution_log_id,
            "extractionLogId": self.extraction_log_id,
            "failedStepId": self.failed_step_id,
            "failedStepName": self.failed_step_name,
        }


class WorkflowEngine:
    """
    Runs a workflow's step list against a WorkflowContext.

    Usage::

        engine = WorkflowEngine(
            definition_store=SqlDefinitionStore(session_factory),
            log_store=SqlLogStore(session_factory),
            services=services,
            blob_store=HttpBlobStore(),
        )
        result = await engine.run(WorkflowRunRequest.model_validate(payload))

    Runs share nothing: each call builds its own context, recorder and
    cursor, so one engine instance may serve concurrent runs.
    """

    def __init__(
        self,
        definition_store: DefinitionStore,
        log_store: LogStore,
        services: StepServices,
        blob_store: BlobStore | None = None,
        max_step_executions: int | None = None,
    ) -> None:
        self.definition_store = definition_store
        self.log_store = log_store
        self.services = services
        self.blob_store = blob_store
        self.max_step_executions = max_step_executions or settings.MAX_STEP_EXECUTIONS
        self.notifier = RunNotifier(services, log_store)
        self.logger = structlog.get_logger("workflow.engine")

    async def run(self, request: WorkflowRunRequest) -> WorkflowRunResult:
        """Full workflow execution for one invocation payload."""
        started_at = datetime.now(timezone.utc)
        log = self.logger.bind(workflow_id=request.workflow_id)
        log.info(
            "Workflow started",
            document_kind=request.document_kind,
            document_type_id=request.document_type_id,
            pdf_filename=request.pdf_filename,
            trigger_source=request.trigger_source,
        )

        document_type = await self._load_document_type(request, log)
        format_type = _format_type(document_type)

        load_error: str | None = None
        raw_data = request.extracted_data
        if raw_data is None:
            try:
                raw_data = await self._fetch_extracted_data(request.extracted_data_location)
            except WorkflowError as exc:
                log.error("Extracted data could not be loaded", location=request.extracted_data_location, error=exc.message)
                load_error = exc.message

        ctx = WorkflowContext.seed(
            request.workflow_id,
            extracted_data=raw_data if raw_data is not None else {},
            format_type=format_type,
            metadata=_seed_metadata(request, document_type, self.services.clock()),
            field_mappings=document_type.field_mappings if document_type else None,
            group_fields=await self._load_group_fields(request, log),
            workflow_only=_workflow_only_fields(request.workflow_only_data, log),
        )
        ctx.trigger_source = request.trigger_source

        recorder = ExecutionRecorder(self.log_store, request.workflow_id)
        if request.extraction_log_id:
            ctx.extraction_log_id = request.extraction_log_id
        else:
            ctx.extraction_log_id = await recorder.record_extraction(_extraction_log_values(request, raw_data))
        ctx.execution_log_id = await recorder.start(ctx.extraction_log_id, ctx)
        log = log.bind(execution_log_id=ctx.execution_log_id)

        if load_error is not None:
            result = await self._fail_run(ctx, recorder, load_error, started_at, log)
        else:
            result = await self._load_and_run_steps(ctx, recorder, started_at, log)

        await self._notify(request, document_type, ctx, result, log)
        return result

    async def _load_and_run_steps(
        self,
        ctx: WorkflowContext,
        recorder: ExecutionRecorder,
        started_at: datetime,
        log: structlog.BoundLogger,
    ) -> WorkflowRunResult:
        try:
            records = await self.definition_store.list_steps(ctx.workflow_id)
            steps = load_definitions(records)
        except WorkflowError as exc:
            return await self._fail_run(ctx, recorder, exc.message, started_at, log, step_id=exc.step_id, step_name=exc.step_name)
        except Exception as exc:
            log.exception("Step definitions could not be loaded")
            return await self._fail_run(ctx, recorder, f"Failed to load workflow steps: {exc}", started_at, log)

        result = await self.run_steps(ctx, steps, recorder)
        result.started_at = started_at
        result.total_duration_ms = int((result.completed_at - started_at).total_seconds() * 1000)

        log.info(
            "Workflow finished",
            success=result.success,
            steps_executed=result.steps_executed,
            total_steps=len(steps),
            duration_ms=result.total_duration_ms,
            output_filename=result.output_filename,
        )
        return result

    async def run_steps(
        self,
        ctx: WorkflowContext,
        steps: list[StepDefinition],
        recorder: ExecutionRecorder | None = None,
    ) -> WorkflowRunResult:
        """
        Execute an ordered list of step definitions against a context.

        Can be called directly (bypassing payload loading) for testing
        or when the step list is already at hand.
        """
        started_at = datetime.now(timezone.utc)
        if recorder is None:
            recorder = ExecutionRecorder(self.log_store, ctx.workflow_id)
            recorder.execution_log_id = ctx.execution_log_id
        dispatcher = StepDispatcher(self.services, steps)
        ctx.total_steps = len(steps)

        log = self.logger.bind(
            workflow_id=ctx.workflow_id,
            execution_log_id=ctx.execution_log_id,
            total_steps=len(steps),
        )

        index = 0
        while index < len(steps):
            if ctx.steps_executed >= self.max_step_executions:
                exc = StepLimitExceededError(
                    f"Workflow exceeded the limit of {self.max_step_executions} step executions",
                    limit=self.max_step_executions,
                )
                log.error("Step execution limit reached, stopping", limit=self.max_step_executions)
                return await self._fail_run(ctx, recorder, exc.message, started_at, log)

            definition = steps[index]
            step_log = log.bind(
                step_id=definition.id,
                step_order=definition.order,
                step_type=definition.type,
                step_name=definition.name,
            )
            ctx.steps_executed += 1
            await recorder.step_started(definition, ctx)
            input_data = {"config": definition.raw_config}

            # ── Guards ────────────────────────────────
            reason = skip_reason(definition, ctx)
            if reason is not None:
                step_log.info("Step skipped", reason=reason)
                result = _skipped_result(definition, reason)
                ctx.step_results.append(result)
                await recorder.record_step(definition, result, ctx, input_data)
                index += 1
                continue

            # ── Execute ───────────────────────────────
            step_log.info(f"Step {definition.order}: {definition.name}")
            result = await self._execute(dispatcher, definition, ctx, step_log)
            ctx.step_results.append(result)
            await recorder.record_step(definition, result, ctx, input_data)

            if result.status == StepStatus.FAILED:
                step_log.error("Step failed, workflow stopping", error=result.error, duration_ms=result.duration_ms)
                return await self._fail_run(
                    ctx, recorder, result.error or "Step failed", started_at, log,
                    step_id=definition.id, step_name=definition.name,
                )

            step_log.info("Step completed", duration_ms=result.duration_ms)
            await recorder.checkpoint(ctx)
            index = next_index(steps, index, result)

        # ── Finalise ──────────────────────────────────
        await recorder.complete(ctx)
        completed_at = datetime.now(timezone.utc)
        output_filename = ctx.get("actualFilename") or ctx.get("renamedFilename")

        return WorkflowRunResult(
            success=True,
            workflow_id=ctx.workflow_id,
            execution_log_id=ctx.execution_log_id,
            extraction_log_id=ctx.extraction_log_id,
            final_context=ctx.snapshot(),
            last_api_response=ctx.last_api_response,
            output_filename=output_filename,
            started_at=started_at,
            completed_at=completed_at,
            total_duration_ms=int((completed_at - started_at).total_seconds() * 1000),
            steps_executed=ctx.steps_executed,
            step_results=[sr.to_dict() for sr in ctx.step_results],
        )

    async def _execute(
        self,
        dispatcher: StepDispatcher,
        definition: StepDefinition,
        ctx: WorkflowContext,
        log: structlog.BoundLogger,
    ) -> StepResult:
        """Run one step, converting any exception into a failed StepResult."""
        started_at = datetime.now(timezone.utc)
        try:
            step = dispatcher.build(definition)
            return await step.execute(ctx)

        except WorkflowError as exc:
            return _failed_result(definition, started_at, exc.message, exc.output_data)

        except Exception as exc:
            # Unexpected error: surface the raw text, keep the traceback in the log row
            log.exception("Unexpected error in step", error=str(exc))
            return _failed_result(
                definition, started_at, str(exc) or type(exc).__name__,
                {"error": str(exc), "traceback": traceback.format_exc()},
            )

    async def _fail_run(
        self,
        ctx: WorkflowContext,
        recorder: ExecutionRecorder,
        error: str,
        started_at: datetime,
        log: structlog.BoundLogger,
        *,
        step_id: str | None = None,
        step_name: str | None = None,
    ) -> WorkflowRunResult:
        await recorder.fail(error, ctx)
        completed_at = datetime.now(timezone.utc)
        log.error("Workflow failed", error=error, failed_step_id=step_id)
        return WorkflowRunResult(
            success=False,
            workflow_id=ctx.workflow_id,
            execution_log_id=ctx.execution_log_id,
            extraction_log_id=ctx.extraction_log_id,
            final_context=ctx.snapshot(),
            last_api_response=ctx.last_api_response,
            error=error,
            failed_step_id=step_id,
            failed_step_name=step_name,
            started_at=started_at,
            completed_at=completed_at,
            total_duration_ms=int((completed_at - started_at).total_seconds() * 1000),
            steps_executed=ctx.steps_executed,
            step_results=[sr.to_dict() for sr in ctx.step_results],
        )

    async def _notify(
        self,
        request: WorkflowRunRequest,
        document_type: DocumentType | None,
        ctx: WorkflowContext,
        result: WorkflowRunResult,
        log: structlog.BoundLogger,
    ) -> None:
        """Outcome email for extraction runs; failures here never change the result."""
        if not request.extraction_type_id:
            return
        kind = NotificationType.SUCCESS if result.success else NotificationType.FAILURE
        try:
            extraction_type = document_type
            if extraction_type is None or extraction_type.kind != DocumentKind.EXTRACTION:
                extraction_type = await self.definition_store.get_document_type(
                    request.extraction_type_id, DocumentKind.EXTRACTION
                )
            if extraction_type is None:
                log.info("Extraction type not found, no run notification")
                return
            await self.notifier.notify(kind, extraction_type, ctx, error_message=result.error)
        except Exception as exc:
            log.warning("Run notification failed (non-fatal)", notification_type=str(kind), error=str(exc))

    # ─── Loading ───────────────────────────────────────

    async def _load_document_type(self, request: WorkflowRunRequest, log) -> DocumentType | None:
        if not request.document_type_id:
            return None
        try:
            return await self.definition_store.get_document_type(request.document_type_id, request.document_kind)
        except Exception as exc:
            log.warning("Document type lookup failed, using defaults (non-fatal)", error=str(exc))
            return None

    async def _fetch_extracted_data(self, location: str | None) -> str:
        if not location:
            raise StorageError("No extracted data or storage location provided")
        if self.blob_store is None:
            raise StorageError("No blob store configured to load extracted data")
        try:
            return await self.blob_store.fetch_text(location)
        except WorkflowError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to load extracted data from '{location}': {exc}") from exc

    async def _load_group_fields(self, request: WorkflowRunRequest, log) -> dict[str, Any]:
        if not request.session_id or not request.group_order or request.group_order <= 1:
            return {}
        try:
            return await self.definition_store.get_previous_group_fields(request.session_id, request.group_order)
        except Exception as exc:
            log.warning("Previous page-group data unavailable (non-fatal)", session_id=request.session_id, error=str(exc))
            return {}


# ─── Helpers ──────────────────────────────────────────

def _format_type(document_type: DocumentType | None) -> str:
    if document_type and document_type.format_type:
        candidate = document_type.format_type.upper()
        if candidate in {f.value for f in FormatType}:
            return FormatType(candidate)
    return FormatType.JSON


def _seed_metadata(
    request: WorkflowRunRequest,
    document_type: DocumentType | None,
    now: datetime,
) -> dict[str, Any]:
    filename_template = (
        request.page_group_filename_template
        or (document_type.filename_template if document_type else None)
        or request.extraction_type_filename
    )
    return {
        "pdfFilename": request.extraction_type_filename or request.pdf_filename,
        "originalPdfFilename": request.original_pdf_filename or request.pdf_filename,
        "extractionTypeFilename": filename_template,
        "pageGroupFilenameTemplate": request.page_group_filename_template,
        "pdfStoragePath": request.pdf_location,
        "pdfBase64": request.pdf_bytes_base64,
        "userId": request.user_id,
        "senderEmail": request.sender_email,
        "extractionTypeName": (document_type.name if document_type else None) or "Unknown",
        "timestamp": format_run_timestamp(now),
    }


def format_run_timestamp(now: datetime) -> str:
    """en-US style local time, e.g. ``03/15/2024, 2:30 AM``."""
    local = now.astimezone(TIMESTAMP_ZONE)
    return f"{local:%m/%d/%Y}, {local.hour % 12 or 12}:{local:%M %p}"


def _workflow_only_fields(raw: Any, log: structlog.BoundLogger) -> dict[str, Any]:
    if not raw:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            log.warning("workflowOnlyData is not valid JSON, ignoring it", error=str(exc))
            return {}
    return raw if isinstance(raw, dict) else {}


def _extraction_log_values(request: WorkflowRunRequest, raw_data: Any) -> dict[str, Any]:
    return {
        "user_id": request.user_id,
        "extraction_type_id": request.extraction_type_id,
        "transformation_type_id": request.transformation_type_id,
        "pdf_filename": request.original_pdf_filename or request.pdf_filename,
        "pdf_pages": request.pdf_page_count,
        "extracted_data": raw_data if isinstance(raw_data, str) or raw_data is None else _as_text(raw_data),
        "processing_mode": request.document_kind,
        "session_id": request.session_id,
        "group_order": request.group_order,
    }


def _as_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _skipped_result(definition: StepDefinition, reason: str) -> StepResult:
    now = datetime.now(timezone.utc)
    return StepResult(
        step_id=definition.id,
        step_name=definition.name,
        step_type=definition.type,
        step_order=definition.order,
        status=StepStatus.SKIPPED,
        started_at=now,
        completed_at=now,
        error=reason,
        output={"skipped": True, "reason": reason, "conditionalSkip": True},
    )


def _failed_result(
    definition: StepDefinition,
    started_at: datetime,
    error: str,
    output: dict[str, Any] | None,
) -> StepResult:
    now = datetime.now(timezone.utc)
    return StepResult(
        step_id=definition.id,
        step_name=definition.name,
        step_type=definition.type,
        step_order=definition.order,
        status=StepStatus.FAILED,
        started_at=started_at,
        completed_at=now,
        duration_ms=int((now - started_at).total_seconds() * 1000),
        error=error,
        output=output or {"error": error},
    )
