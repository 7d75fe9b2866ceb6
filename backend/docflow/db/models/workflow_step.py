"""
WorkflowStep: one configured step of a workflow.

Steps of a workflow share `workflow_id` and run in `step_order`.  The
free-form `config_json` is parsed per `step_type` when a run starts.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from docflow.db.models.base import Base, JSONType, generate_uuid, utcnow


class WorkflowStep(Base):
    """One row per step definition."""

    __tablename__ = "workflow_steps"
    __table_args__ = (UniqueConstraint("workflow_id", "step_order", name="uq_workflow_steps_order"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_id = Column(String(36), nullable=False, index=True)

    # ── Definition ────────────────────────────
    step_order = Column(Integer, nullable=False)
    step_type = Column(String(50), nullable=False)
    step_name = Column(String(255), nullable=False)
    config_json = Column(JSONType, default=dict)

    # ── Branching (conditional_check only) ────
    next_step_on_success_id = Column(String(36), nullable=True)
    next_step_on_failure_id = Column(String(36), nullable=True)

    # ── Step-log message, `{path}` placeholders ──
    user_response_template = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.step_order}:{self.step_type} workflow={self.workflow_id}>"
