"""
DocumentType: extraction or transformation type that feeds a workflow.

Only the parts the step engine reads are modelled here: the output format,
the filename template, the field mappings (which mark workflow-only
fields) and the run notification settings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, JSONType, generate_uuid, utcnow


class DocumentType(Base):
    __tablename__ = "document_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default="extraction", index=True
    )  # extraction | transformation
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    format_type: Mapped[str] = mapped_column(String(10), nullable=False, default="JSON")  # JSON | CSV | XML
    filename_template: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    field_mappings: Mapped[list] = mapped_column(JSONType, default=list)

    # ── Run notifications ─────────────────────
    enable_success_notifications: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    enable_failure_notifications: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    success_notification_template_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    failure_notification_template_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    success_recipient_email_override: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_recipient_email_override: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<DocumentType {self.kind}:{self.name} format={self.format_type}>"
