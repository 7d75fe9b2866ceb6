"""
Execution log repository: extraction logs, run logs and step logs.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docflow.db.models.extraction_log import ExtractionLog
from docflow.db.models.workflow_execution_log import WorkflowExecutionLog
from docflow.db.models.workflow_step_log import WorkflowStepLog


async def create_extraction_log(db: AsyncSession, **fields: Any) -> ExtractionLog:
    log = ExtractionLog(**fields)
    db.add(log)
    await db.flush()
    return log


async def create_execution_log(db: AsyncSession, **fields: Any) -> WorkflowExecutionLog:
    log = WorkflowExecutionLog(**fields)
    db.add(log)
    await db.flush()
    return log


async def update_execution_log(db: AsyncSession, execution_log_id: str, **fields: Any) -> None:
    stmt = (
        update(WorkflowExecutionLog)
        .where(WorkflowExecutionLog.id == execution_log_id)
        .values(**fields)
    )
    await db.execute(stmt)
    await db.flush()


async def create_step_log(db: AsyncSession, **fields: Any) -> WorkflowStepLog:
    log = WorkflowStepLog(**fields)
    db.add(log)
    await db.flush()
    return log


async def list_execution_logs(
    db: AsyncSession,
    *,
    workflow_id: str | None = None,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[WorkflowExecutionLog]:
    """Runs, newest first, with optional workflow/status filters."""
    stmt = select(WorkflowExecutionLog).order_by(desc(WorkflowExecutionLog.started_at))
    if workflow_id:
        stmt = stmt.where(WorkflowExecutionLog.workflow_id == workflow_id)
    if status:
        stmt = stmt.where(WorkflowExecutionLog.status == status)
    stmt = stmt.offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_execution_log(db: AsyncSession, execution_log_id: str) -> WorkflowExecutionLog | None:
    """One run with its step logs loaded."""
    stmt = (
        select(WorkflowExecutionLog)
        .where(WorkflowExecutionLog.id == execution_log_id)
        .options(selectinload(WorkflowExecutionLog.step_logs))
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
