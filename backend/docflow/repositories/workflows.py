"""
Workflow definition repository: step rows, document types and earlier
page-group data.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docflow.db.models.document_type import DocumentType
from docflow.db.models.page_group_data import PageGroupData
from docflow.db.models.workflow_step import WorkflowStep


def step_to_record(step: WorkflowStep) -> dict[str, Any]:
    """Plain dict of the columns StepDefinition.from_record reads."""
    return {
        "id": step.id,
        "workflow_id": step.workflow_id,
        "step_order": step.step_order,
        "step_type": step.step_type,
        "step_name": step.step_name,
        "config_json": step.config_json or {},
        "next_step_on_success_id": step.next_step_on_success_id,
        "next_step_on_failure_id": step.next_step_on_failure_id,
        "user_response_template": step.user_response_template,
    }


async def list_steps(db: AsyncSession, workflow_id: str) -> list[WorkflowStep]:
    """All steps of a workflow in execution order."""
    stmt = (
        select(WorkflowStep)
        .where(WorkflowStep.workflow_id == workflow_id)
        .order_by(WorkflowStep.step_order)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_step(db: AsyncSession, **fields: Any) -> WorkflowStep:
    step = WorkflowStep(**fields)
    db.add(step)
    await db.flush()
    return step


async def get_document_type(db: AsyncSession, type_id: str, kind: str) -> DocumentType | None:
    stmt = select(DocumentType).where(DocumentType.id == type_id, DocumentType.kind == kind)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_previous_groups(db: AsyncSession, session_id: str, group_order: int) -> list[PageGroupData]:
    """Page groups of the session that come before `group_order`."""
    stmt = (
        select(PageGroupData)
        .where(PageGroupData.session_id == session_id, PageGroupData.group_order < group_order)
        .order_by(PageGroupData.group_order)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
