"""
NotificationTemplate: stored email for run outcomes and notification steps.

Subject, body, recipient and cc take ``{{path}}`` placeholders.  One
template per type may be the global default, used when an extraction type
names none.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, generate_uuid, utcnow


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    template_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # success | failure
    template_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    recipient_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subject_template: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body_template: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cc_emails: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bcc_emails: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attach_pdf: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_global_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<NotificationTemplate {self.template_type}:{self.template_name}>"
