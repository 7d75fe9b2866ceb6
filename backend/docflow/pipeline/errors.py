"""
Domain-specific exception hierarchy for the workflow engine.

All workflow exceptions inherit from WorkflowError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (step id, execution log ID, etc.) for logging/debugging, and an
optional output_data payload the engine writes to the failed step log.
"""

from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base exception for all workflow errors."""

    def __init__(
        self,
        message: str,
        *,
        execution_log_id: str | None = None,
        step_id: str | None = None,
        step_name: str | None = None,
        details: dict | None = None,
        output_data: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.execution_log_id = execution_log_id
        self.step_id = step_id
        self.step_name = step_name
        self.details = details or {}
        self.output_data = output_data
        super().__init__(message)


class PathError(WorkflowError):
    """A write path crosses an existing non-container value."""
    pass


class StepExecutionError(WorkflowError):
    """A step failed during execution."""
    pass


class StepConfigurationError(StepExecutionError):
    """Step config is missing or invalid, or a required profile does not exist."""
    pass


class StepDataError(StepExecutionError):
    """Data the step needs is absent from the context (empty payload, no document bytes)."""
    pass


class APIRequestError(StepExecutionError):
    """An HTTP request made by a step failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)


class TransferError(StepExecutionError):
    """An SFTP transfer failed."""
    pass


class EmailDeliveryError(StepExecutionError):
    """The email provider rejected or failed to send a message."""
    pass


class PageExtractionError(StepExecutionError):
    """A single page could not be cut out of the source document."""
    pass


class WorkflowDefinitionError(WorkflowError):
    """The step list for a workflow is empty, unparseable, or references unknown steps."""
    pass


class StepLimitExceededError(WorkflowError):
    """A run executed more steps than MAX_STEP_EXECUTIONS allows."""

    def __init__(self, message: str, *, limit: int = 0, **kwargs) -> None:
        self.limit = limit
        super().__init__(message, **kwargs)


class StorageError(WorkflowError):
    """Fetching a payload from blob storage failed."""
    pass
