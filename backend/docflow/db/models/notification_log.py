"""
NotificationLog: one row per notification email attempt, sent or failed.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, generate_uuid, utcnow


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    workflow_execution_log_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    extraction_type_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    template_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    notification_type: Mapped[str] = mapped_column(String(20), nullable=False)  # success | failure
    recipient_email: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cc_emails: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bcc_emails: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    send_status: Mapped[str] = mapped_column(String(20), nullable=False)  # sent | failed
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pdf_attached: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<NotificationLog {self.notification_type} to={self.recipient_email} status={self.send_status}>"
