"""
WorkflowStepLog: one row per step per workflow run (append-only).

Skipped steps get a row too, with the skip reason in `error_message`.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from docflow.db.models.base import Base, JSONType, generate_uuid, utcnow


class WorkflowStepLog(Base):
    """One row per step execution within a workflow run."""

    __tablename__ = "workflow_step_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_execution_log_id = Column(
        String(36),
        ForeignKey("workflow_execution_logs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workflow_id = Column(String(36), nullable=False)

    # ── Step identity ─────────────────────────
    step_id = Column(String(36), nullable=False)
    step_name = Column(String(255), nullable=False)
    step_type = Column(String(50), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)

    # ── Status ────────────────────────────────
    status = Column(String(20), nullable=False, index=True)

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # ── Error / skip reason ───────────────────
    error_message = Column(Text, nullable=True)

    # ── Payloads ──────────────────────────────
    input_data = Column(JSONType, default=dict)
    output_data = Column(JSONType, default=dict)
    user_response = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # ── Relationship ──────────────────────────
    execution_log = relationship("WorkflowExecutionLog", back_populates="step_logs")

    def __repr__(self) -> str:
        return f"<WorkflowStepLog {self.step_name} status={self.status} order={self.step_order}>"
