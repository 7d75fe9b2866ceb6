"""
Workflow engine: runs a stored, ordered list of post-extraction steps
(API calls, file renames, SFTP uploads, emails, conditional checks)
against a shared context, with per-step logging and branch routing.
"""

from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.engine import WorkflowEngine, WorkflowRunResult
from docflow.pipeline.request import WorkflowRunRequest
from docflow.pipeline.step import WorkflowStep

__all__ = [
    "WorkflowContext",
    "WorkflowEngine",
    "WorkflowRunRequest",
    "WorkflowRunResult",
    "WorkflowStep",
    "StepResult",
]
