"""
WorkflowStep: abstract base class for all workflow steps.

Every step type inherits from this class.  The engine evaluates guards,
calls execute() and records timing, logging, and errors; steps only
implement the business logic and raise a StepExecutionError subclass
when they cannot finish.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from docflow.core.constants import StepStatus
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import StepConfig, StepDefinition
from docflow.pipeline.interfaces import StepServices


class WorkflowStep(ABC):
    """
    Base class for every step type.

    Subclasses MUST implement:
        - description (str)   human-readable label for logs
        - execute(ctx)        the actual business logic
    """

    description: str = "No description"

    def __init__(
        self,
        definition: StepDefinition,
        services: StepServices,
        workflow_steps: dict[str, StepDefinition] | None = None,
    ) -> None:
        self.definition = definition
        self.services = services
        # Every step of the workflow by id, for steps that refer to others.
        self.workflow_steps = workflow_steps or {}

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def config(self) -> StepConfig:
        return self.definition.config

    @abstractmethod
    async def execute(self, ctx: WorkflowContext) -> StepResult:
        """
        Run the step's logic.  Must return a StepResult.

        Read from and write to `ctx` to pass data between steps.
        Raise StepExecutionError (or a subclass) on failure.
        """
        ...

    # ─── Helpers available to all steps ────────────────

    def _success(
        self,
        started_at: datetime,
        output: dict[str, Any] | None = None,
        condition_met: bool | None = None,
    ) -> StepResult:
        """Build a successful StepResult with timing."""
        now = self._now()
        return StepResult(
            step_id=self.definition.id,
            step_name=self.name,
            step_type=self.definition.type,
            step_order=self.definition.order,
            status=StepStatus.COMPLETED,
            started_at=started_at,
            completed_at=now,
            duration_ms=int((now - started_at).total_seconds() * 1000),
            output=output or {},
            condition_met=condition_met,
        )

    def _error_context(self, ctx: WorkflowContext) -> dict[str, Any]:
        """Keyword arguments that tag an exception with this step's identity."""
        return {
            "execution_log_id": ctx.execution_log_id,
            "step_id": self.definition.id,
            "step_name": self.name,
        }

    def _now(self) -> datetime:
        """UTC-aware now."""
        return datetime.now(timezone.utc)
