"""
Notification repository: templates and the notification log.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from docflow.db.models.notification_log import NotificationLog
from docflow.db.models.notification_template import NotificationTemplate


async def get_template(db: AsyncSession, template_id: str) -> NotificationTemplate | None:
    result = await db.execute(select(NotificationTemplate).where(NotificationTemplate.id == template_id))
    return result.scalar_one_or_none()


async def get_default_template(db: AsyncSession, template_type: str) -> NotificationTemplate | None:
    """The global default template for `template_type` (newest wins)."""
    stmt = (
        select(NotificationTemplate)
        .where(
            NotificationTemplate.template_type == template_type,
            NotificationTemplate.is_global_default.is_(True),
        )
        .order_by(desc(NotificationTemplate.created_at))
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_template(db: AsyncSession, **fields: Any) -> NotificationTemplate:
    template = NotificationTemplate(**fields)
    db.add(template)
    await db.flush()
    return template


async def create_notification_log(db: AsyncSession, **fields: Any) -> NotificationLog:
    log = NotificationLog(**fields)
    db.add(log)
    await db.flush()
    return log


async def list_notification_logs(db: AsyncSession, execution_log_id: str) -> list[NotificationLog]:
    stmt = (
        select(NotificationLog)
        .where(NotificationLog.workflow_execution_log_id == execution_log_id)
        .order_by(NotificationLog.sent_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
