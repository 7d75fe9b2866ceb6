"""
WorkflowExecutionLog: run-level record of one workflow execution.

Created as `running` before the first step, patched with the current step
and a context snapshot as the run progresses, and closed as `completed`
or `failed`.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from docflow.db.models.base import Base, JSONType, generate_uuid, utcnow


class WorkflowExecutionLog(Base):
    """One row per workflow run."""

    __tablename__ = "workflow_execution_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    extraction_log_id = Column(String(36), ForeignKey("extraction_logs.id", ondelete="SET NULL"), nullable=True)
    workflow_id = Column(String(36), nullable=False, index=True)

    # ── Status / cursor ──────────────────────
    status = Column(String(20), nullable=False, default="running", index=True)
    current_step_id = Column(String(36), nullable=True)
    current_step_name = Column(String(255), nullable=True)

    # ── Context snapshot ─────────────────────
    context_data = Column(JSONType, default=dict)

    # ── Error ─────────────────────────────────
    error_message = Column(Text, nullable=True)

    # ── Notifications ─────────────────────────
    success_notification_sent = Column(Boolean, default=False, nullable=False)
    failure_notification_sent = Column(Boolean, default=False, nullable=False)
    notification_sent_at = Column(DateTime(timezone=True), nullable=True)

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationships ─────────────────────────
    step_logs = relationship(
        "WorkflowStepLog",
        back_populates="execution_log",
        cascade="all, delete-orphan",
        order_by="WorkflowStepLog.started_at",
    )

    def __repr__(self) -> str:
        return f"<WorkflowExecutionLog {self.id} workflow={self.workflow_id} status={self.status}>"
